"""
Analytics functions - gains rankings and history series for display.
Stored xp is in tenths of a point; everything returned here is in whole points.
"""
import pandas as pd

from .experience import skill_progress
from .models import GAIN_WINDOWS
from .skills import OVERALL_ID, skill_name


def to_display_xp(value):
    """Tenths of a point to whole points"""
    return int(value // 10)


def gain_for_skill(gains, skill_id, window='7d'):
    """Displayed gain of one skill over a window, None when gains are unavailable or missing"""
    if gains is None or not gains.is_available:
        return None
    value = gains.window(window).get(skill_id)
    if value is None:
        return None
    return to_display_xp(value)


def top_gains(gains, window='7d', n=3):
    """Skills with the largest positive gain in a window, overall excluded"""
    if gains is None or not gains.is_available:
        return []
    ranked = [
        (skill_id, value) for skill_id, value in gains.window(window).items()
        if skill_id != OVERALL_ID and value > 0
    ]
    ranked.sort(key=lambda item: item[1], reverse=True)
    return [
        {'id': skill_id, 'skill': skill_name(skill_id), 'gain': to_display_xp(value)}
        for skill_id, value in ranked[:n]
    ]


def gains_frame(gains):
    """DataFrame of displayed gains, one row per skill and one column per window"""
    if gains is None or not gains.is_available:
        return pd.DataFrame(columns=['skill', *GAIN_WINDOWS])
    skill_ids = sorted({sid for window in GAIN_WINDOWS for sid in gains.window(window)})
    df = pd.DataFrame(
        {window: [to_display_xp(gains.window(window).get(sid, 0)) for sid in skill_ids] for window in GAIN_WINDOWS},
        index=skill_ids,
    )
    df.index.name = 'skill_id'
    df.insert(0, 'skill', [skill_name(sid) for sid in skill_ids])
    return df


def history_frame(history):
    """One row per snapshot: totals plus the xp of every skill, indexed by timestamp"""
    if history is None or not history.snapshots:
        return pd.DataFrame(columns=['total_xp', 'total_level'])

    records = []
    for snapshot in history.snapshots:
        record = {
            'timestamp': snapshot.timestamp,
            'total_xp': to_display_xp(snapshot.total_xp),
            'total_level': snapshot.total_level,
        }
        for skill_id, state in snapshot.skills.items():
            record[skill_name(skill_id)] = to_display_xp(state.xp)
        records.append(record)

    df = pd.DataFrame(records)
    df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True)
    return df.set_index('timestamp').sort_index()


def history_series(history, skill_id=OVERALL_ID):
    """Chart points for one skill (or overall total xp) over the stored history"""
    if history is None:
        return []
    points = []
    for snapshot in history.snapshots:
        if skill_id == OVERALL_ID:
            xp = snapshot.total_xp
        else:
            state = snapshot.skills.get(skill_id)
            xp = state.xp if state else 0
        points.append({'timestamp': snapshot.timestamp.isoformat(), 'xp': to_display_xp(xp)})
    return points


def history_summary(history, skill_id=OVERALL_ID):
    """First/last xp and gain across the stored history, None with fewer than two snapshots"""
    points = history_series(history, skill_id)
    if len(points) < 2:
        return None
    first, last = points[0], points[-1]
    return {
        'skill': skill_name(skill_id),
        'start': first['timestamp'],
        'end': last['timestamp'],
        'start_xp': first['xp'],
        'end_xp': last['xp'],
        'gained': last['xp'] - first['xp'],
        'snapshots': len(points),
    }


def profile_progress(profile):
    """Progress figures for every skill of a profile, keyed by skill id"""
    return {skill.id: skill_progress(skill) for skill in profile.skills}
