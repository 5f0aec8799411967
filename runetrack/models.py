"""
Pydantic models for profiles, snapshots, history and gains records.
Field aliases follow the wire/storage JSON shapes.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, timedelta, timezone


GAIN_WINDOWS = ('1d', '7d', '30d', '365d')


def _parse_rank(value):
    """RuneMetrics sends ranks as '1,234', numbers, or nothing at all"""
    if value is None or value == '':
        return None
    if isinstance(value, (int, float)):
        return int(value) if value >= 0 else None
    cleaned = str(value).replace(',', '').strip()
    try:
        rank = int(cleaned)
    except ValueError:
        return None
    return rank if rank >= 0 else None


class Skill(BaseModel):
    """One skill of a profile. xp is in tenths of a point, rank None means unranked"""
    model_config = ConfigDict(frozen=True)

    id: int
    level: int = Field(..., ge=1)
    xp: int
    rank: Optional[int] = None

    @field_validator('rank', mode='before')
    @classmethod
    def _rank(cls, value):
        return _parse_rank(value)


class Profile(BaseModel):
    """Current stats for a character as returned by RuneMetrics"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    rank: Optional[int] = None
    total_skill: int = Field(..., alias='totalskill')
    total_xp: int = Field(..., alias='totalxp')
    combat_level: int = Field(0, alias='combatlevel')
    skills: List[Skill] = Field(default_factory=list, alias='skillvalues')

    @field_validator('rank', mode='before')
    @classmethod
    def _rank(cls, value):
        return _parse_rank(value)

    @field_validator('skills')
    @classmethod
    def _unique_skills(cls, skills):
        seen = {}
        for skill in skills:
            seen[skill.id] = skill
        return sorted(seen.values(), key=lambda s: s.id)

    def skill(self, skill_id):
        return next((s for s in self.skills if s.id == skill_id), None)


class SkillState(BaseModel):
    model_config = ConfigDict(frozen=True)

    xp: int
    level: int
    rank: Optional[int] = None


class Snapshot(BaseModel):
    """Point-in-time capture of a character's skills"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timestamp: datetime
    skills: Dict[int, SkillState] = Field(default_factory=dict)
    total_xp: int = Field(..., alias='totalXp')
    total_level: int = Field(..., alias='totalLevel')

    @field_validator('timestamp')
    @classmethod
    def _aware(cls, value):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_profile(cls, profile, timestamp):
        return cls(
            timestamp=timestamp,
            skills={s.id: SkillState(xp=s.xp, level=s.level, rank=s.rank) for s in profile.skills},
            total_xp=profile.total_xp,
            total_level=profile.total_skill,
        )


class SubjectHistory(BaseModel):
    """Stored snapshots for one character, oldest first"""
    model_config = ConfigDict(populate_by_name=True)

    rsn: str
    snapshots: List[Snapshot] = Field(default_factory=list)

    @property
    def latest(self):
        return self.snapshots[-1] if self.snapshots else None


class GainsRecord(BaseModel):
    """
    Xp gained per skill over the four tracker windows (tenths of a point).
    A record with is_available False carries the reason in error/error_kind.
    """
    model_config = ConfigDict(populate_by_name=True)

    day: Dict[int, int] = Field(default_factory=dict, alias='1d')
    week: Dict[int, int] = Field(default_factory=dict, alias='7d')
    month: Dict[int, int] = Field(default_factory=dict, alias='30d')
    year: Dict[int, int] = Field(default_factory=dict, alias='365d')
    is_available: bool = Field(False, alias='isAvailable')
    error: Optional[str] = None
    error_kind: Optional[str] = Field(None, alias='errorKind')

    def window(self, name):
        return {
            '1d': self.day,
            '7d': self.week,
            '30d': self.month,
            '365d': self.year,
        }[name]

    @classmethod
    def unavailable(cls, error, kind=None):
        return cls(is_available=False, error=error, error_kind=kind)

    @classmethod
    def from_error(cls, exc):
        return cls.unavailable(exc.message, exc.kind)


class CacheEntry(BaseModel):
    """A cached gains record and when it was written"""
    model_config = ConfigDict(populate_by_name=True)

    data: GainsRecord
    timestamp: datetime

    @field_validator('timestamp')
    @classmethod
    def _aware(cls, value):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_fresh(self, now, ttl_seconds):
        return now - self.timestamp < timedelta(seconds=ttl_seconds)


class LookupResult(BaseModel):
    """Everything one lookup produced, merged for display"""
    model_config = ConfigDict(populate_by_name=True)

    subject: str
    profile: Profile
    gains: GainsRecord
    from_cache: bool = False
    history: Optional[SubjectHistory] = None
    save_error: Optional[str] = None
    save_error_kind: Optional[str] = None

    @property
    def storage_full(self):
        return self.save_error_kind == 'storage_full'
