import pytest
from unittest.mock import MagicMock, patch

from signoz_adapter import main as adapter_main
from signoz_adapter.main import SignozAdapter, overrides_from_args, parse_args


class TestArguments:

    def test_flags_become_overrides(self):
        args = parse_args([
            '--signoz-endpoint', 'https://signoz.example.com',
            '--signoz-api-key', 'secret',
            '--signoz-timerange-minutes', '30',
            '--signoz-metrics', 'a,b',
            '--signoz-label-filters', 'service.name=myapp',
            '--signoz-query-mode', 'builder',
            '--port', '6443',
        ])

        assert overrides_from_args(args) == {
            'endpoint': 'https://signoz.example.com',
            'api_key': 'secret',
            'timerange_minutes': 30,
            'metrics': 'a,b',
            'label_filters': 'service.name=myapp',
            'query_mode': 'builder',
            'server_port': 6443,
        }

    def test_unset_flags_are_none(self):
        overrides = overrides_from_args(parse_args([]))
        assert all(v is None for v in overrides.values())

    def test_missing_configuration_exits(self, monkeypatch):
        for name in ('SIGNOZ_URL', 'SIGNOZ_API_KEY', 'SIGNOZ_METRICS'):
            monkeypatch.delenv(name, raising=False)

        with pytest.raises(SystemExit) as exc_info:
            adapter_main.main([])
        assert exc_info.value.code == 1


class TestSignozAdapter:

    @pytest.fixture
    def adapter(self, adapter_config):
        with patch.object(SignozAdapter, '_init_collector') as init_collector, \
                patch.object(SignozAdapter, '_init_object_lister'):
            init_collector.return_value = MagicMock()
            yield SignozAdapter(adapter_config)

    def test_check_backend_validates_metrics(self, adapter):
        adapter.collector.health_check.return_value = {'status': 'healthy'}
        adapter.collector.validate_metrics.return_value = ['http_requests_inflight']

        adapter.check_backend()

        adapter.collector.validate_metrics.assert_called_once_with(
            ['phpfpm_active_processes', 'http_requests_inflight']
        )

    def test_check_backend_skips_validation_when_unhealthy(self, adapter):
        adapter.collector.health_check.return_value = {'status': 'unhealthy: down'}

        adapter.check_backend()

        adapter.collector.validate_metrics.assert_not_called()
