"""
Experience curve lookups and per-skill progress figures.
"""
import math

from .skills import is_elite, max_level

XP_CAP = 200_000_000

# Exact cumulative xp for the elite (Invention) curve at these levels
ELITE_MILESTONES = {
    99: 36_073_511,
    120: 80_610_333,
    150: 200_000_000,
}


def _standard_xp(level):
    total = 0
    for i in range(1, level):
        total += math.floor(i + 300 * 2 ** (i / 7))
    return total // 4


def _elite_approximation(level):
    """
    Approximate the elite curve between milestones.

    Below 99 a power curve anchored on the level-99 milestone; between
    milestones a geometric interpolation. Known to drift from the live curve
    at non-milestone levels.
    """
    milestones = sorted(ELITE_MILESTONES.items())
    first_level, first_xp = milestones[0]
    if level < first_level:
        return math.floor(first_xp * ((level - 1) / (first_level - 1)) ** 3.8)

    for (low_level, low_xp), (high_level, high_xp) in zip(milestones, milestones[1:]):
        if low_level <= level <= high_level:
            ratio = (level - low_level) / (high_level - low_level)
            return math.floor(low_xp * (high_xp / low_xp) ** ratio)

    return XP_CAP


def xp_for_level(level, elite=False):
    """Cumulative xp needed to reach ``level`` on the standard or elite curve"""
    level = int(level)
    if level <= 1:
        return 0

    if elite:
        if level > 150:
            return XP_CAP
        if level in ELITE_MILESTONES:
            return ELITE_MILESTONES[level]
        return _elite_approximation(level)

    return _standard_xp(level)


def skill_progress(skill):
    """
    Progress figures for one skill of a profile.

    ``skill.xp`` is in tenths; the returned xp values are whole points.
    Maxed skills report progress towards the 200m cap.
    """
    elite = is_elite(skill.id)
    cap_level = max_level(skill.id)
    current_xp = skill.xp / 10
    current_level = skill.level
    next_level = min(current_level + 1, cap_level)

    xp_current_level = xp_for_level(current_level, elite)
    xp_next_level = xp_for_level(next_level, elite)

    remaining_xp = max(0, xp_next_level - current_xp)
    if current_level >= cap_level or xp_next_level <= xp_current_level:
        progress_percent = min(100.0, current_xp / XP_CAP * 100)
    else:
        progress_percent = (current_xp - xp_current_level) / (xp_next_level - xp_current_level) * 100
        progress_percent = max(0.0, min(100.0, progress_percent))

    return {
        'current_xp': current_xp,
        'current_level': current_level,
        'next_level': next_level,
        'xp_to_next': xp_next_level,
        'remaining_xp': remaining_xp,
        'progress_percent': progress_percent,
    }
