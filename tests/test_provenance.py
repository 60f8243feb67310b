"""
Tests for the Provenance Service

Tests verify:
- Event writes append a create block with a full diff
- Transformations carry their mass-balance verdict in metadata
- Metadata annotations append an update block
- Event write and audit block commit or roll back together
"""

import pytest

from agritrace.services.errors import AuditAppendError, InvalidInput, NotFound

from tests.factories import E1, E2


def harvest_payload():
    return {
        'eventType': 'ObjectEvent',
        'action': 'ADD',
        'eventTime': '2024-05-01T08:00:00Z',
        'bizStep': 'commissioning',
        'outputEpcList': [E1],
        'readPoint': 'urn:epc:id:sgln:0614141.00001.0',
        'sourceType': 'manual',
    }


def roasting_payload(output_kg=85):
    return {
        'eventType': 'TransformationEvent',
        'eventTime': '2024-05-01T10:00:00Z',
        'bizStep': 'transforming',
        'inputEpcList': [E1],
        'outputEpcList': [E2],
        'inputQuantityList': [{'value': 100, 'unitOfMeasure': 'kg'}],
        'outputQuantityList': [{'value': output_kg, 'unitOfMeasure': 'kg'}],
        'bizLocation': 'urn:epc:id:sgln:0614141.00003.0',
    }


class TestRecordEvent:

    def test_event_and_create_block(self, provenance, chain):
        event, block = provenance.record_event(harvest_payload(), actor="ops@farm", reason="harvest intake")

        assert block.entity_type == 'event'
        assert block.entity_id == event.id
        assert block.action_type == 'create'
        assert block.actor == "ops@farm"
        assert block.payload['reason'] == "harvest intake"
        assert block.payload['diff']['eventType'] == {'old': None, 'new': 'ObjectEvent'}
        assert block.payload['diff']['outputEpcList'] == {'old': None, 'new': [E1]}
        assert chain.verify_chain().is_valid

    def test_invalid_event_writes_nothing(self, provenance, store, chain):
        payload = harvest_payload()
        payload['outputEpcList'] = []

        with pytest.raises(InvalidInput):
            provenance.record_event(payload)

        assert store.count() == 0
        assert chain.verify_chain().total_blocks == 0

    def test_audit_failure_rolls_back_event(self, provenance, store, chain, monkeypatch):
        def failing_append(entry, session=None):
            raise AuditAppendError("disk full")

        monkeypatch.setattr(chain, 'append', failing_append)

        with pytest.raises(AuditAppendError):
            provenance.record_event(harvest_payload())

        assert store.count() == 0

    def test_transformation_rejected(self, provenance, store, chain):
        payload = roasting_payload(500)
        payload['metadata'] = {'massBalance': {'valid': True, 'conversionFactor': 85}}

        with pytest.raises(InvalidInput):
            provenance.record_event(payload)

        assert store.count() == 0
        assert chain.verify_chain().total_blocks == 0

    def test_caller_verdict_dropped(self, provenance, store):
        payload = harvest_payload()
        payload['metadata'] = {
            'massBalance': {'valid': True},
            'validation': {'warnings': []},
            'lotNote': 'north field',
        }

        event, _ = provenance.record_event(payload)

        assert store.get(event.id).metadata == {'lotNote': 'north field'}

    def test_trail_per_event(self, provenance, chain):
        event, _ = provenance.record_event(harvest_payload(), reason="intake")
        provenance.record_transformation(roasting_payload(), reason="roast")

        trail = chain.get_trail('event', event.id)

        assert [b.action_type for b in trail] == ['create']


class TestRecordTransformation:

    def test_valid_verdict_stored(self, provenance, store):
        event, verdict, block = provenance.record_transformation(
            roasting_payload(85), product_type='raw_coffee_to_roasted', reason="roast",
        )

        assert verdict.valid is True
        stored = store.get(event.id)
        assert stored.metadata['massBalance']['valid'] is True
        assert stored.metadata['massBalance']['productType'] == 'raw_coffee_to_roasted'
        assert block.payload['diff']['metadata']['new']['massBalance']['valid'] is True

    def test_anomalous_verdict_is_recorded_not_blocked(self, provenance, store):
        event, verdict, _ = provenance.record_transformation(
            roasting_payload(90), product_type='raw_coffee_to_roasted', reason="roast",
        )

        assert verdict.valid is False
        anomalies = store.get(event.id).metadata['massBalance']['anomalies']
        assert [a['code'] for a in anomalies] == ['over_yield']

    def test_forged_verdict_replaced(self, provenance, store):
        payload = roasting_payload(500)
        payload['metadata'] = {'massBalance': {'valid': True, 'conversionFactor': 85}}

        event, verdict, _ = provenance.record_transformation(
            payload, product_type='raw_coffee_to_roasted', reason="roast",
        )

        stored = store.get(event.id).metadata['massBalance']
        assert verdict.valid is False
        assert stored['valid'] is False
        assert stored['conversionFactor'] == pytest.approx(500.0)
        assert [a['code'] for a in stored['anomalies']] == ['over_yield']

    def test_requires_transformation(self, provenance):
        with pytest.raises(InvalidInput):
            provenance.record_transformation(harvest_payload())

    def test_requires_quantities(self, provenance, store):
        payload = roasting_payload()
        payload['outputQuantityList'] = []

        with pytest.raises(InvalidInput):
            provenance.record_transformation(payload, product_type='raw_coffee_to_roasted')

        assert store.count() == 0

    def test_recorded_transformation_is_traceable(self, provenance, traceback_engine):
        harvest, _ = provenance.record_event(harvest_payload(), reason="intake")
        transform, _, _ = provenance.record_transformation(
            roasting_payload(), product_type='raw_coffee_to_roasted', reason="roast",
        )

        result = traceback_engine.trace(E2)

        assert result.root_node.event.id == transform.id
        assert [e.id for e in result.origin_events] == [harvest.id]


class TestAnnotateEvent:

    def test_update_block_with_diff(self, provenance, chain):
        event, _ = provenance.record_event(harvest_payload(), reason="intake")

        annotated, block = provenance.annotate_event(
            event.id, 'qualityHold', True, actor="qa@farm", reason="lab result pending",
        )

        assert annotated.metadata['qualityHold'] is True
        assert block.action_type == 'update'
        assert block.payload['diff'] == {'metadata.qualityHold': {'old': None, 'new': True}}
        assert [b.action_type for b in chain.get_trail('event', event.id)] == ['create', 'update']

    def test_unknown_event(self, provenance, chain):
        with pytest.raises(NotFound):
            provenance.annotate_event('no-such-event', 'qualityHold', True, reason="x")

        assert chain.verify_chain().total_blocks == 0

    def test_empty_key(self, provenance):
        event, _ = provenance.record_event(harvest_payload())

        with pytest.raises(InvalidInput):
            provenance.annotate_event(event.id, '', True)

    @pytest.mark.parametrize("key", ['massBalance', 'validation'])
    def test_reserved_key(self, provenance, chain, key):
        event, _ = provenance.record_event(harvest_payload())

        with pytest.raises(InvalidInput):
            provenance.annotate_event(event.id, key, {'valid': True})

        assert chain.verify_chain().total_blocks == 1

    def test_audit_failure_rolls_back_annotation(self, provenance, store, chain, monkeypatch):
        event, _ = provenance.record_event(harvest_payload())

        def failing_append(entry, session=None):
            raise AuditAppendError("disk full")

        monkeypatch.setattr(chain, 'append', failing_append)

        with pytest.raises(AuditAppendError):
            provenance.annotate_event(event.id, 'qualityHold', True, reason="x")

        assert 'qualityHold' not in store.get(event.id).metadata
