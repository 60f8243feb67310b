"""
Tests for EPCIS Events, Validation and the Event Store

Tests verify:
- Wire parsing (aliases, time normalization, quantity checks)
- Producer-contract validation and warnings
- Store insert, queries and the metadata side-channel
"""

from datetime import datetime, timedelta, timezone

import pytest

from agritrace.services.epcis import (
    Event,
    EventType,
    EventValidator,
    QuantityItem,
    parse_event_time,
)
from agritrace.services.errors import InvalidInput, NotFound

from tests.factories import E1, E2, E3, at


class TestEventParsing:
    """Event.from_dict and friends."""

    def test_short_event_type_and_aliases(self):
        event = Event.from_dict({
            'eventType': 'Transformation',
            'eventTime': '2024-05-01T10:00:00Z',
            'inputEPCList': [E1],
            'outputEPCList': [E2],
            'inputQuantityList': [{'quantity': 100, 'uom': 'kg', 'gtin': '00614141107346'}],
        })

        assert event.event_type is EventType.TRANSFORMATION
        assert event.input_epc_list == [E1]
        assert event.output_epc_list == [E2]
        assert event.input_quantity_list == [QuantityItem(100.0, 'kg', '00614141107346')]

    def test_event_time_normalized_to_naive_utc(self):
        aware = datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

        assert parse_event_time(aware) == datetime(2024, 5, 1, 10, 0)
        assert parse_event_time('2024-05-01T10:00:00Z') == datetime(2024, 5, 1, 10, 0)
        assert parse_event_time('2024-05-01T10:00:00') == datetime(2024, 5, 1, 10, 0)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
    def test_invalid_event_time(self, value):
        with pytest.raises(InvalidInput):
            parse_event_time(value)

    def test_unknown_event_type(self):
        with pytest.raises(InvalidInput):
            Event.from_dict({'eventType': 'ShippingEvent', 'eventTime': '2024-05-01T10:00:00Z'})

    @pytest.mark.parametrize("item", [
        {'value': -1, 'unitOfMeasure': 'kg'},
        {'value': 'ten', 'unitOfMeasure': 'kg'},
        {'value': True, 'unitOfMeasure': 'kg'},
        {'value': float('nan'), 'unitOfMeasure': 'kg'},
        {'value': 5},
        'five kilos',
    ])
    def test_invalid_quantity(self, item):
        with pytest.raises(InvalidInput):
            QuantityItem.from_dict(item)

    def test_to_dict_round_trip_fields(self):
        event = Event.from_dict({
            'eventType': 'ObjectEvent',
            'eventTime': '2024-05-01T10:00:00Z',
            'epcList': [E1],
            'readPoint': 'urn:epc:id:sgln:0614141.00001.0',
        })

        data = event.to_dict()
        assert data['eventType'] == 'ObjectEvent'
        assert data['eventTime'] == '2024-05-01T10:00:00'
        assert data['readPoint'] == 'urn:epc:id:sgln:0614141.00001.0'
        assert 'readPoint' not in event.to_dict(include_location=False)


class TestEventValidator:
    """Producer contract."""

    @pytest.fixture
    def validator(self):
        return EventValidator()

    def test_valid_event_without_warnings(self, validator, make_event):
        report = validator.validate(make_event(EventType.OBJECT, 0, epc_list=[E1]))

        assert report.warnings == []
        assert 'EPCIS_STRUCTURE' in report.rules_applied

    def test_event_without_epcs(self, validator, make_event):
        with pytest.raises(InvalidInput) as exc:
            validator.validate(make_event(EventType.OBJECT, 0))

        assert any('at least one EPC' in e for e in exc.value.errors)

    def test_transformation_needs_outputs(self, validator, make_event):
        with pytest.raises(InvalidInput):
            validator.validate(make_event(EventType.TRANSFORMATION, 0, input_epc_list=[E1]))

    def test_transformation_rejects_epc_list(self, validator, make_event):
        with pytest.raises(InvalidInput):
            validator.validate(make_event(
                EventType.TRANSFORMATION, 0, epc_list=[E1], output_epc_list=[E2],
            ))

    def test_object_event_rejects_inputs(self, validator, make_event):
        with pytest.raises(InvalidInput):
            validator.validate(make_event(EventType.OBJECT, 0, epc_list=[E1], input_epc_list=[E3]))

    def test_commissioning_with_outputs_only(self, validator, make_event):
        report = validator.validate(make_event(
            EventType.OBJECT, 0, action='ADD', output_epc_list=[E1],
        ))

        assert report.warnings == []

    def test_invalid_action(self, validator, make_event):
        with pytest.raises(InvalidInput):
            validator.validate(make_event(EventType.OBJECT, 0, action='MOVE', epc_list=[E1]))

    def test_all_errors_reported(self, validator, make_event):
        with pytest.raises(InvalidInput) as exc:
            validator.validate(make_event(EventType.TRANSFORMATION, 0, action='MOVE', epc_list=[E1]))

        assert len(exc.value.errors) == 3

    def test_recommended_field_warnings(self, validator):
        event = Event(
            event_type=EventType.TRANSFORMATION,
            event_time=at(0),
            input_epc_list=['LOT-2024-0001'],
            output_epc_list=[E2],
            source_type='drone',
        )

        report = validator.validate(event)
        warning_codes = [w.code for w in report.warnings]

        assert warning_codes == [
            'MISSING_BIZ_STEP',
            'MISSING_LOCATION',
            'UNKNOWN_SOURCE_TYPE',
            'MISSING_INPUT_QUANTITIES',
            'NON_URN_EPC',
        ]


class TestEventStore:
    """Insert, queries, metadata."""

    def test_insert_assigns_id_and_recorded_at(self, store, make_event):
        event = make_event(EventType.OBJECT, 0, epc_list=[E1], id='client-chosen')

        stored = store.insert(event)

        assert stored.id != 'client-chosen'
        assert len(stored.id) == 36
        assert stored.recorded_at is not None
        assert store.get(stored.id).epc_list == [E1]

    def test_insert_rejects_invalid_event(self, store, make_event):
        with pytest.raises(InvalidInput):
            store.insert(make_event(EventType.TRANSFORMATION, 0, input_epc_list=[E1]))

        assert store.count() == 0

    def test_warnings_stored_in_metadata(self, store):
        stored = store.insert(Event(event_type=EventType.OBJECT, event_time=at(0), epc_list=[E1]))

        codes = [w['code'] for w in stored.metadata['validation']['warnings']]
        assert codes == ['MISSING_BIZ_STEP', 'MISSING_LOCATION']

    def test_quantities_persisted(self, store, make_event):
        stored = store.insert(make_event(
            EventType.TRANSFORMATION, 0,
            input_epc_list=[E1],
            output_epc_list=[E2],
            input_quantity_list=[QuantityItem(100.0, 'kg')],
            output_quantity_list=[QuantityItem(85.0, 'kg')],
        ))

        reloaded = store.get(stored.id)
        assert reloaded.input_quantity_list == [QuantityItem(100.0, 'kg')]
        assert reloaded.output_quantity_list == [QuantityItem(85.0, 'kg')]

    def test_get_unknown(self, store):
        with pytest.raises(NotFound):
            store.get('no-such-event')

    def test_query_by_epc_most_recent_first(self, store, scenario_a):
        events = store.query_by_epc(E2)

        assert [e.id for e in events] == [scenario_a['ship'].id, scenario_a['transform'].id]

    def test_query_by_epc_roles(self, store, scenario_a):
        inputs = store.query_by_epc(E1, roles=('input',))

        assert [e.id for e in inputs] == [scenario_a['transform'].id]

    def test_query_by_time_range(self, store, scenario_a):
        events = store.query_by_time_range(start=at(1), end=at(4))

        assert [e.id for e in events] == [scenario_a['transform'].id, scenario_a['ship'].id]

    def test_query_by_time_range_and_type(self, store, scenario_a):
        events = store.query_by_time_range(event_type=EventType.TRANSFORMATION)

        assert [e.id for e in events] == [scenario_a['transform'].id]

    def test_update_metadata_returns_old_and_new(self, store, scenario_a):
        event_id = scenario_a['ship'].id

        assert store.update_metadata(event_id, 'recall', 'hold') == (None, 'hold')
        assert store.update_metadata(event_id, 'recall', 'released') == ('hold', 'released')
        assert store.get(event_id).metadata['recall'] == 'released'

    def test_update_metadata_unknown_event(self, store):
        with pytest.raises(NotFound):
            store.update_metadata('no-such-event', 'recall', 'hold')

    def test_count(self, store, scenario_a):
        assert store.count() == 3
