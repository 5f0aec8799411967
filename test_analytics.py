"""
Tests for gains rankings, history frames and chart series.
"""
from datetime import datetime, timedelta, timezone

from runetrack.analytics import (gain_for_skill, gains_frame, history_frame, history_series,
                                 history_summary, profile_progress, to_display_xp, top_gains)
from runetrack.models import GainsRecord, Profile, SkillState, Snapshot, SubjectHistory
from conftest import make_profile

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def sample_gains():
    return GainsRecord(
        week={-1: 999_990, 0: 12_340, 2: 5_000, 26: 200_000, 6: 0, 1: -150, 14: 5},
        day={0: 100},
        is_available=True,
    )


def sample_history():
    snapshots = [
        Snapshot(
            timestamp=T0 + timedelta(hours=i),
            skills={0: SkillState(xp=1_000_000 + i * 50_000, level=60), 2: SkillState(xp=2_000_000, level=70)},
            total_xp=10_000_000 + i * 50_000,
            total_level=1500 + i,
        )
        for i in range(3)
    ]
    return SubjectHistory(rsn='Zezima', snapshots=snapshots)


def test_display_xp_truncates_tenths():
    assert to_display_xp(12_340) == 1234
    assert to_display_xp(12_349) == 1234
    assert to_display_xp(5) == 0


def test_top_gains_excludes_overall_and_non_positive():
    top = top_gains(sample_gains())
    assert [item['id'] for item in top] == [26, 0, 2]
    assert top[1] == {'id': 0, 'skill': 'Attack', 'gain': 1234}


def test_top_gains_limits_and_windows():
    assert len(top_gains(sample_gains(), n=10)) == 4
    assert top_gains(sample_gains(), window='1d') == [{'id': 0, 'skill': 'Attack', 'gain': 10}]
    assert top_gains(sample_gains(), window='30d') == []


def test_unavailable_gains_show_nothing():
    record = GainsRecord.unavailable('Player not tracked on CML', 'not_tracked')
    assert top_gains(record) == []
    assert gain_for_skill(record, 0) is None
    assert gains_frame(record).empty


def test_gain_for_skill():
    gains = sample_gains()
    assert gain_for_skill(gains, 0) == 1234
    assert gain_for_skill(gains, 1) == -15
    assert gain_for_skill(gains, 3) is None
    assert gain_for_skill(gains, 0, window='1d') == 10


def test_gains_frame():
    df = gains_frame(sample_gains())
    assert list(df.columns) == ['skill', '1d', '7d', '30d', '365d']
    assert df.loc[0, 'skill'] == 'Attack'
    assert df.loc[0, '7d'] == 1234
    assert df.loc[0, '1d'] == 10
    assert df.loc[2, '1d'] == 0
    assert df.loc[-1, 'skill'] == 'Overall'


def test_history_frame():
    df = history_frame(sample_history())
    assert len(df) == 3
    assert df.index.is_monotonic_increasing
    assert df['total_xp'].tolist() == [1_000_000, 1_005_000, 1_010_000]
    assert df['Attack'].iloc[-1] == 110_000
    assert history_frame(None).empty


def test_history_series_overall_and_skill():
    history = sample_history()
    overall = history_series(history)
    assert [p['xp'] for p in overall] == [1_000_000, 1_005_000, 1_010_000]
    assert overall[0]['timestamp'] == T0.isoformat()

    attack = history_series(history, 0)
    assert [p['xp'] for p in attack] == [100_000, 105_000, 110_000]
    assert [p['xp'] for p in history_series(history, 5)] == [0, 0, 0]
    assert history_series(None) == []


def test_history_summary():
    summary = history_summary(sample_history(), 0)
    assert summary['skill'] == 'Attack'
    assert summary['gained'] == 10_000
    assert summary['snapshots'] == 3

    single = SubjectHistory(rsn='Zezima', snapshots=sample_history().snapshots[:1])
    assert history_summary(single) is None


def test_profile_progress():
    profile = Profile.model_validate(make_profile())
    progress = profile_progress(profile)
    assert set(progress) == {0, 2, 26}
    assert progress[26]['current_level'] == 120
    assert progress[0]['current_xp'] == 14_000_000
