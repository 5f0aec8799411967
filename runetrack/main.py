"""
RuneTrack - command line lookup.
Usage: python -m runetrack.main "Zezima" [--clear]
"""
import sys
import asyncio

from .analytics import history_summary, top_gains
from .errors import LookupFailed
from .skills import skill_name
from .tracker import Tracker


def print_result(result):
    profile = result.profile
    print(f"\n📋 {profile.name}")
    print(f"  Rank: {profile.rank:,}" if profile.rank is not None else "  Rank: ---")
    print(f"  Total level: {profile.total_skill}")
    print(f"  Total XP: {profile.total_xp:,}")
    print(f"  Combat level: {profile.combat_level}")

    gains = result.gains
    if gains.is_available:
        source = " (cached)" if result.from_cache else ""
        print(f"\n🔥 Top 7d gains{source}:")
        top = top_gains(gains, '7d', n=3)
        if not top:
            print("  No gains in the last 7 days")
        for item in top:
            print(f"  {item['skill']}: +{item['gain']:,} XP")
    else:
        print(f"\n⚠️  Gains unavailable: {gains.error}")

    if result.save_error:
        print(f"\n❌ Snapshot not saved: {result.save_error}")
        if result.storage_full:
            print("  Run with --clear to wipe local data.")

    summary = history_summary(result.history)
    if summary:
        print(f"\n📈 History ({summary['snapshots']} snapshots):")
        print(f"  {summary['skill']} XP gained since {summary['start']}: +{summary['gained']:,}")

    print("\nSkills:")
    for skill in profile.skills:
        print(f"  {skill_name(skill.id):<14} {skill.level:>4}  {skill.xp // 10:>13,}")


def main(argv=None):
    """Look up one character and print the merged view"""
    argv = sys.argv[1:] if argv is None else argv
    tracker = Tracker()

    if '--clear' in argv:
        tracker.clear_all()
        print("✅ Local data cleared")
        argv = [a for a in argv if a != '--clear']
        if not argv:
            return 0

    if not argv:
        print("Usage: python -m runetrack.main <character name> [--clear]")
        return 2

    name = ' '.join(argv)
    print("🚀 RuneTrack")
    print("=" * 50)
    print(f"\n📡 Looking up {name}...")
    try:
        result = asyncio.run(tracker.lookup(name))
    except LookupFailed as e:
        print(f"❌ {e.message}")
        return 1

    print_result(result)
    print("\n✅ Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
