import pytest
from dataclasses import replace
from unittest.mock import patch
from prometheus_client import REGISTRY

from signoz_adapter.core.errors import MetricNotFoundError, ObjectListingError, TransportError
from signoz_adapter.core import provider as provider_module
from signoz_adapter.core.provider import SignozMetricsProvider


def fallback_count():
    value = REGISTRY.get_sample_value(
        'signoz_adapter_fallback_aggregations_total', {'metric': 'phpfpm_active_processes'}
    )
    return value or 0.0


class TestAllowList:

    def test_unknown_metric_never_reaches_backend(self, adapter_config, stub_collector_factory,
                                                  stub_lister_factory):
        collector = stub_collector_factory()
        lister = stub_lister_factory(['pod-a'])
        provider = SignozMetricsProvider(adapter_config, collector, lister)

        with pytest.raises(MetricNotFoundError):
            provider.get_metric_by_name('default', 'pod-a', 'not_allowed')
        with pytest.raises(MetricNotFoundError):
            provider.get_metric_by_selector('default', 'app=web', 'not_allowed')
        with pytest.raises(MetricNotFoundError):
            provider.get_external_metric('default', 'not_allowed')

        assert collector.calls == []
        assert lister.calls == []

    def test_is_allowed_metric(self, adapter_config, stub_collector_factory, stub_lister_factory):
        provider = SignozMetricsProvider(adapter_config, stub_collector_factory(), stub_lister_factory())
        assert provider.is_allowed_metric('phpfpm_active_processes')
        assert not provider.is_allowed_metric('phpfpm_active')

    def test_lists_every_allowed_metric(self, adapter_config, stub_collector_factory, stub_lister_factory):
        provider = SignozMetricsProvider(adapter_config, stub_collector_factory(), stub_lister_factory())

        infos = provider.list_all_metrics()

        assert [i.metric for i in infos] == ['phpfpm_active_processes', 'http_requests_inflight']
        assert all(i.group_resource == 'pods' and i.namespaced for i in infos)
        assert provider.list_all_external_metrics() == ['phpfpm_active_processes', 'http_requests_inflight']


class TestGetMetricByName:

    def test_direct_match(self, adapter_config, stub_collector_factory, stub_lister_factory, make_series):
        collector = stub_collector_factory([make_series('target-pod', '3'), make_series('other-pod', '99')])
        provider = SignozMetricsProvider(adapter_config, collector, stub_lister_factory())

        value = provider.get_metric_by_name('default', 'target-pod', 'phpfpm_active_processes')

        assert value.value == 3
        assert value.name == 'target-pod'
        assert value.namespace == 'default'
        assert value.window_seconds == 300
        assert value.to_dict()['value'] == '3000m'
        assert len(collector.calls) == 1
        assert collector.calls[0].metric_name == 'phpfpm_active_processes'

    def test_fallback_sums_all_series(self, adapter_config, stub_collector_factory, stub_lister_factory,
                                      make_series):
        collector = stub_collector_factory([make_series('other-pod', '3'), make_series('other-pod', '4')])
        provider = SignozMetricsProvider(adapter_config, collector, stub_lister_factory())
        before = fallback_count()

        value = provider.get_metric_by_name('default', 'target-pod', 'phpfpm_active_processes')

        assert value.value == 7
        after = fallback_count()
        assert after == before + 1

    def test_series_are_scanned_once(self, adapter_config, stub_collector_factory, stub_lister_factory,
                                     make_series):
        collector = stub_collector_factory([make_series('other-pod', '3'), make_series('other-pod', '4')])
        provider = SignozMetricsProvider(adapter_config, collector, stub_lister_factory())

        with patch.object(provider_module, 'matched_value', wraps=provider_module.matched_value) as mock_match:
            value = provider.get_metric_by_name('default', 'target-pod', 'phpfpm_active_processes')

        assert value.value == 7
        mock_match.assert_called_once()

    def test_no_series_is_zero(self, adapter_config, stub_collector_factory, stub_lister_factory):
        provider = SignozMetricsProvider(adapter_config, stub_collector_factory([]), stub_lister_factory())

        value = provider.get_metric_by_name('default', 'target-pod', 'phpfpm_active_processes')

        assert value.value == 0
        assert value.to_dict()['value'] == '0m'

    def test_strict_attribution_refuses_fallback(self, adapter_config, stub_collector_factory,
                                                 stub_lister_factory, make_series):
        config = replace(adapter_config, strict_attribution=True)
        collector = stub_collector_factory([make_series('other-pod', '3')])
        provider = SignozMetricsProvider(config, collector, stub_lister_factory())

        with pytest.raises(MetricNotFoundError, match='target-pod'):
            provider.get_metric_by_name('default', 'target-pod', 'phpfpm_active_processes')

    def test_label_filters_become_query_predicate(self, adapter_config, stub_collector_factory,
                                                  stub_lister_factory):
        config = replace(adapter_config, label_filters={'service.name': 'myapp', 'env': 'prod'},
                         filter_expression='team="core"')
        collector = stub_collector_factory([])
        provider = SignozMetricsProvider(config, collector, stub_lister_factory())

        provider.get_metric_by_name('default', 'pod-a', 'phpfpm_active_processes')

        assert collector.calls[0].filter_expression == 'team="core",env="prod",service.name="myapp"'

    def test_no_filters_means_no_predicate(self, adapter_config, stub_collector_factory, stub_lister_factory):
        collector = stub_collector_factory([])
        provider = SignozMetricsProvider(adapter_config, collector, stub_lister_factory())

        provider.get_metric_by_name('default', 'pod-a', 'phpfpm_active_processes')

        assert collector.calls[0].filter_expression is None

    def test_transport_failure_propagates(self, adapter_config, stub_collector_factory, stub_lister_factory):
        collector = stub_collector_factory(error=TransportError("signoz returned 503"))
        provider = SignozMetricsProvider(adapter_config, collector, stub_lister_factory())

        with pytest.raises(TransportError):
            provider.get_metric_by_name('default', 'pod-a', 'phpfpm_active_processes')


class TestGetMetricBySelector:

    def test_one_query_for_all_pods(self, adapter_config, stub_collector_factory, stub_lister_factory,
                                    make_series):
        collector = stub_collector_factory([
            make_series('pod-a', '2'), make_series('pod-a', '3'), make_series('pod-b', '10'),
        ])
        lister = stub_lister_factory(['pod-a', 'pod-b', 'pod-c'])
        provider = SignozMetricsProvider(adapter_config, collector, lister)

        values = provider.get_metric_by_selector('web', 'app=web', 'phpfpm_active_processes')

        assert {v.name: v.value for v in values} == {'pod-a': 5, 'pod-b': 10}
        assert all(v.namespace == 'web' for v in values)
        assert len(collector.calls) == 1
        assert lister.calls == [('web', 'app=web')]

    def test_unlabeled_series_do_not_fall_back(self, adapter_config, stub_collector_factory,
                                               stub_lister_factory, make_series):
        collector = stub_collector_factory([make_series(None, '42')])
        provider = SignozMetricsProvider(adapter_config, collector, stub_lister_factory(['pod-a']))

        assert provider.get_metric_by_selector('web', '', 'phpfpm_active_processes') == []

    def test_listing_failure_propagates(self, adapter_config, stub_collector_factory, stub_lister_factory):
        lister = stub_lister_factory(error=ObjectListingError("forbidden"))
        provider = SignozMetricsProvider(adapter_config, stub_collector_factory([]), lister)

        with pytest.raises(ObjectListingError):
            provider.get_metric_by_selector('web', 'app=web', 'phpfpm_active_processes')


class TestGetExternalMetric:

    def test_total_across_all_series(self, adapter_config, stub_collector_factory, stub_lister_factory,
                                     make_series):
        collector = stub_collector_factory([
            make_series('pod-a', '1.5'), make_series(None, '2'), make_series('pod-b', 'abc'),
        ])
        provider = SignozMetricsProvider(adapter_config, collector, stub_lister_factory())

        values = provider.get_external_metric('default', 'http_requests_inflight')

        assert len(values) == 1
        assert values[0].value == 3.5
        assert values[0].to_dict()['metricName'] == 'http_requests_inflight'
        assert values[0].to_dict()['value'] == '3500m'
