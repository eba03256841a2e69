"""
Tests for the logging and operation timing service.
"""
import json
import logging
import os
import shutil
import tempfile
import unittest

from cvpn_pki_manager.models.config import Config
from cvpn_pki_manager.services.logging_service import (
    JSONFormatter,
    LoggingService,
    PerformanceMonitor,
)


class TestJSONFormatter(unittest.TestCase):
    """Test JSON formatter for structured logging."""

    def setUp(self):
        self.formatter = JSONFormatter()

    def _record(self, msg='Test message', exc_info=None):
        logger = logging.getLogger('test')
        return logger.makeRecord(
            name='test.module', level=logging.INFO, fn='test_file.py', lno=42,
            msg=msg, args=(), exc_info=exc_info
        )

    def test_format_basic_log_record(self):
        log_data = json.loads(self.formatter.format(self._record()))

        self.assertIn('timestamp', log_data)
        self.assertEqual(log_data['level'], 'INFO')
        self.assertEqual(log_data['logger_name'], 'test.module')
        self.assertEqual(log_data['message'], 'Test message')
        self.assertEqual(log_data['line_number'], 42)
        self.assertIsNone(log_data['exception_info'])

    def test_format_with_extra_data(self):
        record = self._record()
        record.extra_data = {'operation': 'update_crl', 'duration_ms': 12.5}

        log_data = json.loads(self.formatter.format(record))

        self.assertEqual(log_data['extra_data']['operation'], 'update_crl')

    def test_format_with_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record = self._record(exc_info=sys.exc_info())

        log_data = json.loads(self.formatter.format(record))

        self.assertEqual(log_data['exception_info']['type'], 'ValueError')
        self.assertEqual(log_data['exception_info']['message'], 'boom')


class TestPerformanceMonitor(unittest.TestCase):

    def setUp(self):
        self.monitor = PerformanceMonitor()

    def test_successful_operation(self):
        with self.monitor.measure_operation('list_users', {'pki': 'cvpn-pki'}):
            pass

        metrics = self.monitor.get_metrics('list_users')
        self.assertEqual(len(metrics), 1)
        self.assertTrue(metrics[0].success)
        self.assertEqual(metrics[0].extra_data, {'pki': 'cvpn-pki'})
        self.assertGreaterEqual(metrics[0].duration_ms, 0)

    def test_failed_operation_is_recorded_and_reraised(self):
        with self.assertRaises(RuntimeError):
            with self.monitor.measure_operation('update_crl'):
                raise RuntimeError("vault down")

        stats = self.monitor.get_operation_stats('update_crl')
        self.assertEqual(stats['total_calls'], 1)
        self.assertEqual(stats['failure_count'], 1)
        self.assertEqual(self.monitor.get_metrics('update_crl')[0].error_message, "vault down")

    def test_all_stats(self):
        for op in ('get_crl', 'get_crl', 'rotate_crl'):
            with self.monitor.measure_operation(op):
                pass

        stats = self.monitor.get_all_stats()

        self.assertEqual(list(stats), ['get_crl', 'rotate_crl'])
        self.assertEqual(stats['get_crl']['total_calls'], 2)
        self.assertEqual(self.monitor.get_operation_stats('unknown'), {})


class TestLoggingService(unittest.TestCase):

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        for handler in self.root.handlers[:]:
            self.root.removeHandler(handler)
            if handler not in self.saved_handlers:
                handler.close()
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_production_mode_logs_json(self):
        LoggingService(log_mode="production", log_level="WARNING")

        self.assertEqual(self.root.level, logging.WARNING)
        self.assertEqual(len(self.root.handlers), 1)
        self.assertIsInstance(self.root.handlers[0].formatter, JSONFormatter)

    def test_development_mode_logs_text_at_debug(self):
        LoggingService(log_mode="development", log_level="ERROR")

        self.assertEqual(self.root.level, logging.DEBUG)
        self.assertNotIsInstance(self.root.handlers[0].formatter, JSONFormatter)
        self.assertEqual(logging.getLogger('botocore').level, logging.INFO)

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            LoggingService(log_mode="verbose")

    def test_file_handler_writes_json(self):
        log_file = os.path.join(self.temp_dir, "logs", "cvpn.log")
        service = LoggingService(log_mode="production", log_file_path=log_file)

        logging.getLogger("cvpn.test").info("written to file")
        for handler in self.root.handlers:
            handler.flush()

        self.assertTrue(os.path.exists(log_file))
        with open(log_file) as f:
            lines = [json.loads(line) for line in f if line.strip()]
        self.assertIn("written to file", [line['message'] for line in lines])
        self.assertIsNotNone(service.performance_monitor)

    def test_from_config(self):
        service = LoggingService.from_config(Config(log_mode="development"))

        self.assertEqual(service.log_mode, "development")
        self.assertEqual(service.log_level, "DEBUG")

    def test_measure_performance(self):
        service = LoggingService(log_mode="production")

        with service.measure_performance('issue_certificate', {'user': 'alice'}):
            pass

        self.assertEqual(service.get_performance_stats('issue_certificate')['total_calls'], 1)
        self.assertIn('issue_certificate', service.get_performance_stats())


if __name__ == '__main__':
    unittest.main()
