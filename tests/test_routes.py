"""
Tests for the AgriTrace HTTP API

Tests verify:
- Event recording and lookup
- Trace queries and error mapping
- Mass-balance checks
- Audit verification and trails
"""

import pytest

from agritrace.services.errors import AuditAppendError, LineageSourceError
from agritrace.services.traceability import LineageSource

from tests.factories import E1, E2


class FailingSource(LineageSource):
    name = "failing"

    def trace(self, identifier, max_depth):
        raise LineageSourceError("unavailable")


def post_scenario_a(client):
    """Harvest -> Transform -> Ship through the API."""
    writes = [
        ('/api/events', {
            'eventType': 'ObjectEvent', 'action': 'ADD', 'bizStep': 'commissioning',
            'eventTime': '2024-05-01T08:00:00Z', 'outputEpcList': [E1],
            'readPoint': 'urn:epc:id:sgln:0614141.00001.0',
        }),
        ('/api/events/transformation', {
            'eventType': 'TransformationEvent', 'bizStep': 'transforming',
            'eventTime': '2024-05-01T10:00:00Z', 'inputEpcList': [E1], 'outputEpcList': [E2],
            'inputQuantityList': [{'value': 100, 'unitOfMeasure': 'kg'}],
            'outputQuantityList': [{'value': 85, 'unitOfMeasure': 'kg'}],
            'readPoint': 'urn:epc:id:sgln:0614141.00002.0',
        }),
        ('/api/events', {
            'eventType': 'ObjectEvent', 'action': 'OBSERVE', 'bizStep': 'shipping',
            'eventTime': '2024-05-01T12:00:00Z', 'epcList': [E2],
            'bizLocation': 'urn:epc:id:sgln:0614141.00003.0',
        }),
    ]
    ids = []
    for url, event in writes:
        response = client.post(url, json={'event': event, 'actor': 'ops', 'reason': 'load'})
        assert response.status_code == 201
        ids.append(response.get_json()['data']['id'])
    return ids


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'


class TestEventRoutes:

    def test_record_and_get_event(self, client):
        harvest_id, _, _ = post_scenario_a(client)

        response = client.get(f'/api/events/{harvest_id}')

        assert response.status_code == 200
        assert response.get_json()['data']['outputEpcList'] == [E1]

    def test_invalid_event(self, client):
        response = client.post('/api/events', json={'event': {'eventType': 'ObjectEvent'}})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidInput'

    def test_missing_body(self, client):
        response = client.post('/api/events', data='not json', content_type='text/plain')

        assert response.status_code == 400

    def test_unknown_event(self, client):
        response = client.get('/api/events/does-not-exist')

        assert response.status_code == 404
        assert response.get_json() == {
            'success': False,
            'error': 'NotFound',
            'message': 'Event does-not-exist not found',
        }

    def test_record_transformation(self, client):
        response = client.post('/api/events/transformation', json={
            'event': {
                'eventType': 'TransformationEvent',
                'eventTime': '2024-05-01T10:00:00Z',
                'bizStep': 'transforming',
                'readPoint': 'urn:epc:id:sgln:0614141.00002.0',
                'inputEpcList': [E1],
                'outputEpcList': [E2],
                'inputQuantityList': [{'value': 100, 'unitOfMeasure': 'kg'}],
                'outputQuantityList': [{'value': 90, 'unitOfMeasure': 'kg'}],
            },
            'productType': 'raw_coffee_to_roasted',
            'reason': 'roast batch 7',
        })

        body = response.get_json()
        assert response.status_code == 201
        assert body['massBalance']['valid'] is False
        assert body['data']['metadata']['massBalance']['anomalies'][0]['code'] == 'over_yield'

    def test_transformation_needs_mass_balance_route(self, client, services):
        response = client.post('/api/events', json={'event': {
            'eventType': 'TransformationEvent',
            'eventTime': '2024-05-01T10:00:00Z',
            'inputEpcList': [E1],
            'outputEpcList': [E2],
            'inputQuantityList': [{'value': 100, 'unitOfMeasure': 'kg'}],
            'outputQuantityList': [{'value': 500, 'unitOfMeasure': 'kg'}],
            'metadata': {'massBalance': {'valid': True, 'conversionFactor': 85}},
        }})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidInput'
        assert services.store.count() == 0

    def test_annotate_event(self, client):
        harvest_id, _, _ = post_scenario_a(client)

        response = client.patch(f'/api/events/{harvest_id}/metadata', json={
            'key': 'qualityHold', 'value': True, 'reason': 'lab pending',
        })

        assert response.status_code == 200
        assert response.get_json()['data']['metadata']['qualityHold'] is True

    def test_audit_failure_maps_to_500(self, client, services, monkeypatch):
        def failing_append(entry, session=None):
            raise AuditAppendError("disk full")

        monkeypatch.setattr(services.chain, 'append', failing_append)

        response = client.post('/api/events', json={'event': {
            'eventType': 'ObjectEvent', 'eventTime': '2024-05-01T08:00:00Z', 'epcList': [E1],
        }})

        assert response.status_code == 500
        assert response.get_json()['error'] == 'AuditAppendError'
        assert services.store.count() == 0


class TestTraceRoutes:

    def test_trace(self, client):
        harvest_id, transform_id, ship_id = post_scenario_a(client)

        response = client.get(f'/api/traceability/{E2}')
        data = response.get_json()['data']

        assert response.status_code == 200
        assert data['source'] == 'liveWalk'
        assert data['totalEvents'] == 3
        assert data['rootNode']['event']['id'] == ship_id
        assert [e['id'] for e in data['originEvents']] == [harvest_id]

    def test_trace_not_found(self, client):
        response = client.get('/api/traceability/urn:epc:id:sgtin:0000000.000000.0')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'NotFound'

    @pytest.mark.parametrize("max_depth", ["abc", "99", "-1"])
    def test_invalid_max_depth(self, client, max_depth):
        post_scenario_a(client)

        response = client.get(f'/api/traceability/{E2}?maxDepth={max_depth}')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidInput'

    def test_max_depth_and_location(self, client):
        post_scenario_a(client)

        response = client.get(f'/api/traceability/{E2}?maxDepth=1&includeLocation=false')
        data = response.get_json()['data']

        assert data['maxDepthReached'] == 1
        assert data['totalEvents'] == 2
        assert 'bizLocation' not in data['rootNode']['event']

    def test_all_sources_failing_maps_to_503(self, client, services, monkeypatch):
        post_scenario_a(client)
        monkeypatch.setattr(services.traceback, 'sources', [FailingSource()])

        response = client.get(f'/api/traceability/{E2}')

        assert response.status_code == 503
        assert response.get_json()['error'] == 'LineageUnavailable'

    def test_refresh_index(self, client):
        post_scenario_a(client)

        response = client.post('/api/traceability/index/refresh')

        assert response.status_code == 200
        assert response.get_json()['edges'] == 2


class TestMassBalanceRoutes:

    def test_check(self, client):
        response = client.post('/api/mass-balance/check', json={
            'inputQuantities': [{'value': 100, 'unitOfMeasure': 'kg'}],
            'outputQuantities': [{'value': 90, 'unitOfMeasure': 'kg'}],
            'productType': 'raw_coffee_to_roasted',
        })
        data = response.get_json()['data']

        assert response.status_code == 200
        assert data['valid'] is False
        assert data['conversionFactor'] == pytest.approx(90.0)
        assert data['anomalies'][0]['code'] == 'over_yield'

    def test_check_rejects_empty_lists(self, client):
        response = client.post('/api/mass-balance/check', json={
            'inputQuantities': [],
            'outputQuantities': [{'value': 90, 'unitOfMeasure': 'kg'}],
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidInput'

    def test_check_rejects_nan_tolerance(self, client):
        body = (
            '{"inputQuantities": [{"value": 100, "unitOfMeasure": "kg"}],'
            ' "outputQuantities": [{"value": 500, "unitOfMeasure": "kg"}],'
            ' "customConversionFactor": 100, "tolerance": NaN}'
        )

        response = client.post('/api/mass-balance/check', data=body, content_type='application/json')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidInput'

    def test_factors(self, client):
        data = client.get('/api/mass-balance/factors').get_json()['data']

        assert data['raw_coffee_to_roasted']['expectedFactorPercent'] == 85.0
        assert len(data) == 4


class TestAuditRoutes:

    def test_verify(self, client):
        post_scenario_a(client)

        data = client.get('/api/audit/verify').get_json()['data']

        assert data['totalBlocks'] == 3
        assert data['validBlocks'] == 3
        assert data['invalidBlocks'] == 0
        assert data['invalid'] == []

    def test_verify_block(self, client):
        post_scenario_a(client)

        assert client.get('/api/audit/blocks/1/verify').get_json()['data'] == {
            'blockNumber': 1, 'isValid': True,
        }
        assert client.get('/api/audit/blocks/99/verify').get_json()['data']['isValid'] is False

    def test_trail(self, client):
        harvest_id, _, _ = post_scenario_a(client)

        body = client.get(f'/api/audit/trail?entityType=event&entityId={harvest_id}').get_json()

        assert body['count'] == 1
        assert body['data'][0]['actionType'] == 'create'
        assert body['data'][0]['actor'] == 'ops'

    def test_trail_requires_entity(self, client):
        response = client.get('/api/audit/trail?entityType=event')

        assert response.status_code == 400

    def test_stats_and_recent(self, client):
        post_scenario_a(client)

        stats = client.get('/api/audit/stats').get_json()['data']
        recent = client.get('/api/audit/recent?limit=2').get_json()

        assert stats['totalBlocks'] == 3
        assert [b['blockNumber'] for b in recent['data']] == [3, 2]

    def test_recent_invalid_limit(self, client):
        assert client.get('/api/audit/recent?limit=zero').status_code == 400
