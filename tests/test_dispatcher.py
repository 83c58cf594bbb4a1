from orderdesk.services.notifications.dispatcher import NotificationDispatcher
from orderdesk.services.notifications.mock import MockAlertService, MockPrinterService
from tests.conftest import TENANT_A, make_record as record


class ExplodingPrinter(MockPrinterService):
    async def print_receipt(self, document):
        if document.order_id == 1:
            raise ConnectionError("printer offline")
        return await super().print_receipt(document)


async def test_no_new_orders_does_nothing(dispatcher, alert, printer, preferences):
    preferences.set_auto_print(True)

    report = await dispatcher.dispatch(TENANT_A, [])

    assert report.alerted is False
    assert alert.alerts == []
    assert printer.printed == []


async def test_alert_once_per_batch(dispatcher, alert, printer):
    report = await dispatcher.dispatch(TENANT_A, [record(1), record(2)])

    assert report.alerted is True
    assert alert.alerts == [(TENANT_A, [1, 2])]
    # auto-print defaults to off
    assert printer.printed == []


async def test_auto_print_prints_each_order_in_order(dispatcher, printer, preferences):
    preferences.set_auto_print(True)

    report = await dispatcher.dispatch(TENANT_A, [record(3), record(1), record(2)])

    assert report.printed == [3, 1, 2]
    assert [doc.order_id for doc in printer.printed] == [3, 1, 2]


async def test_printer_exception_does_not_stop_other_prints(alert, preferences):
    printer = ExplodingPrinter()
    preferences.set_auto_print(True)
    dispatcher = NotificationDispatcher(printer, alert, preferences)

    report = await dispatcher.dispatch(TENANT_A, [record(1), record(2)])

    assert report.print_failures == [1]
    assert report.printed == [2]


async def test_failed_alert_still_prints(printer, preferences):
    preferences.set_auto_print(True)
    dispatcher = NotificationDispatcher(printer, MockAlertService(failure_rate=1.0), preferences)

    report = await dispatcher.dispatch(TENANT_A, [record(5)])

    assert report.alerted is False
    assert report.printed == [5]


async def test_simulated_print_failure_is_reported(alert, preferences):
    preferences.set_auto_print(True)
    dispatcher = NotificationDispatcher(MockPrinterService(failure_rate=1.0), alert, preferences)

    report = await dispatcher.dispatch(TENANT_A, [record(5)])

    assert report.alerted is True
    assert report.print_failures == [5]
