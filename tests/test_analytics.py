import sys
from datetime import datetime, timezone

sys.path.insert(0, '.')

from analytics.csv_export import generate_csv, write_csv
from analytics.dashboard import build_dashboard_view
from analytics.histogram import percent, state_occupancy
from analytics.performance import days_running, parse_timestamp, portfolio_series, time_in_market
from analytics.transitions import (
    count_transitions,
    extract_transitions,
    iter_transitions,
    transition_timeline,
)
from state.models import HistoryEntry, Snapshot
from tests.helpers import history, sync_payload


ACTIVE = ['IGNITION', 'CASCADE_1', 'CASCADE_2', 'SPILLWAY']


def _entries(states):
    return [HistoryEntry.from_dict(row) for row in history(states)]


def test_transitions_skip_consecutive_duplicates():
    entries = _entries(['A', 'A', 'B', 'B', 'C'])
    transitions = extract_transitions(entries)
    assert [(t.from_state, t.to_state) for t in transitions] == [('A', 'B'), ('B', 'C')]
    assert count_transitions(entries) == 2
    assert transitions[0].timestamp == entries[2].timestamp
    assert transitions[0].portfolio_value == entries[2].portfolio_value


def test_transitions_ignore_entries_without_state():
    entries = _entries(['A', None, 'A', None, 'B'])
    assert [(t.from_state, t.to_state) for t in extract_transitions(entries)] == [('A', 'B')]
    assert count_transitions(entries) == 1


def test_transitions_return_to_earlier_state_counts():
    entries = _entries(['A', 'B', 'A'])
    assert count_transitions(entries) == 2


def test_transitions_are_total_over_empty_input():
    assert extract_transitions([]) == []
    assert extract_transitions(None) == []
    assert count_transitions([]) == 0
    assert count_transitions(_entries(['A'])) == 0
    assert count_transitions(_entries([None, None])) == 0


def test_transition_scan_is_lazy():
    def endless():
        n = 0
        while True:
            yield HistoryEntry(current_state='A' if n % 2 == 0 else 'B')
            n += 1

    scan = iter_transitions(endless())
    first, second = next(scan), next(scan)
    assert (first.from_state, first.to_state) == ('A', 'B')
    assert (second.from_state, second.to_state) == ('B', 'A')


def test_timeline_is_newest_first_with_display_keys():
    timeline = transition_timeline(_entries(['A', 'B', 'C']))
    assert [(t['from'], t['to']) for t in timeline] == [('B', 'C'), ('A', 'B')]
    assert set(timeline[0]) == {'from', 'to', 'timestamp', 'portfolioValue'}


def test_occupancy_histogram():
    shares = state_occupancy(_entries(['A', 'A', 'B']))
    assert [(s.state, s.pct) for s in shares] == [('A', 66.7), ('B', 33.3)]
    assert [s.count for s in shares] == [2, 1]


def test_occupancy_excludes_missing_states_from_denominator():
    shares = state_occupancy(_entries(['A', None, 'B', None]))
    assert [(s.state, s.pct) for s in shares] == [('A', 50.0), ('B', 50.0)]


def test_occupancy_sorted_descending_with_stable_ties():
    shares = state_occupancy(_entries(['C', 'B', 'B', 'A', 'C', 'D', 'D', 'D']))
    assert [s.state for s in shares] == ['D', 'C', 'B', 'A']


def test_occupancy_empty():
    assert state_occupancy([]) == []
    assert state_occupancy(None) == []


def test_percent_rounds_half_up():
    assert percent(1, 8) == 12.5
    assert percent(1, 16, places=1) == 6.3
    assert percent(3, 0) == 0.0


def test_time_in_market():
    entries = _entries(['WAITING', 'IGNITION', 'CASCADE_1', 'WAITING', 'SPILLWAY', 'RESET'])
    assert time_in_market(entries, ACTIVE) == 50.0
    assert time_in_market(_entries(['WAITING'] * 2 + ['IGNITION']), ACTIVE) == 33.3
    assert time_in_market([], ACTIVE) == 0.0


def test_days_running_and_series():
    entries = _entries(['A', 'B', 'C', 'D'])
    assert days_running(entries) == 3
    assert days_running([]) == 0
    series = portfolio_series(entries)
    assert series['labels'][0] == '2024-01-01'
    assert series['values'] == [301.0, 302.0, 303.0, 304.0]


def test_parse_timestamp_variants():
    expected = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp('2024-01-01T00:00:00Z') == expected
    assert parse_timestamp('2024-01-01 00:00:00') == expected
    assert parse_timestamp(1704067200) == expected
    assert parse_timestamp(1704067200000) == expected
    assert parse_timestamp('garbage') is None
    assert parse_timestamp(None) is None


def test_csv_empty_snapshot_is_header_only():
    csv_text = generate_csv(Snapshot.placeholder())
    assert csv_text.splitlines() == [
        'Timestamp,State,Portfolio Value,BTC Price,Fear & Greed',
        '',
        'Trades',
        'Timestamp,Symbol,Side,Price,Value',
    ]


def test_csv_one_history_row_and_one_trade():
    payload = sync_payload(states=['IGNITION'], trades=1)
    payload['history'][0]['btc_price'] = 64000.5
    csv_text = generate_csv(Snapshot.from_payload(payload))
    lines = csv_text.splitlines()
    assert lines[0].startswith('Timestamp,State')
    assert lines[1] == '2024-01-01T00:00:00Z,IGNITION,301,64000.5,0'
    assert lines[2] == ''
    assert lines[3] == 'Trades'
    assert lines[5] == '2024-01-01T12:00:00Z,BTC/USDT,buy,64000,50'
    data_lines = [line for line in lines if line and line[0].isdigit()]
    assert len(data_lines) == 2


def test_write_csv(tmp_path):
    path = write_csv(Snapshot.placeholder(), tmp_path / 'out' / 'history.csv')
    assert path.read_text().startswith('Timestamp,State')


def test_dashboard_view_from_synced_snapshot():
    payload = sync_payload('CASCADE_1', states=['WAITING', 'WAITING', 'IGNITION', 'CASCADE_1'], trades=7)
    payload['lastUpdated'] = '2024-01-05T00:00:00Z'
    payload['stats']['fear_greed'] = None
    now = datetime(2024, 1, 5, 2, 0, tzinfo=timezone.utc)
    view = build_dashboard_view(Snapshot.from_payload(payload), active_states=ACTIVE, now=now)

    assert view['offline'] is False
    assert view['mode_badge'] == 'DRY RUN'
    assert view['last_update'] == 'Updated 2h ago'
    assert view['portfolio_value'] == '$312.50'
    assert view['total_return'] == '+4.17%'
    assert view['fear_greed'] == '—'
    assert view['summary'] == {'total_transitions': 2, 'total_trades': 7, 'days_running': 3}
    assert view['timeline'][0]['to'] == 'CASCADE_1'
    assert view['distribution'][0] == {'state': 'WAITING', 'count': 2, 'pct': 50.0}
    assert view['time_in_market_pct'] == 50.0
    assert len(view['recent_activity']) == 5


def test_dashboard_view_of_placeholder_and_offline():
    view = build_dashboard_view(Snapshot.placeholder())
    assert view['has_data'] is False
    assert view['last_update'] == 'Waiting for first sync'
    assert view['timeline'] == []
    assert view['time_in_market_pct'] == 0.0
    assert view['btc_price'] == '$0.00'

    offline = build_dashboard_view(Snapshot.placeholder(), offline=True)
    assert offline['last_update'] == 'Offline - showing cached data'
