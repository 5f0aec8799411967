"""
Skill definitions and the name/alias table used to recognize skills in scraped pages.
"""
import re

OVERALL_ID = -1

# id: (name, max level, elite curve, category)
SKILL_DEFINITIONS = {
    0: ('Attack', 99, False, 'Combat'),
    1: ('Defence', 99, False, 'Combat'),
    2: ('Strength', 99, False, 'Combat'),
    3: ('Constitution', 99, False, 'Combat'),
    4: ('Ranged', 99, False, 'Combat'),
    5: ('Prayer', 99, False, 'Combat'),
    6: ('Magic', 99, False, 'Combat'),
    7: ('Cooking', 99, False, 'Artisan'),
    8: ('Woodcutting', 99, False, 'Gathering'),
    9: ('Fletching', 99, False, 'Artisan'),
    10: ('Fishing', 99, False, 'Gathering'),
    11: ('Firemaking', 99, False, 'Artisan'),
    12: ('Crafting', 99, False, 'Artisan'),
    13: ('Smithing', 99, False, 'Artisan'),
    14: ('Mining', 99, False, 'Gathering'),
    15: ('Herblore', 120, False, 'Artisan'),
    16: ('Agility', 99, False, 'Support'),
    17: ('Thieving', 99, False, 'Support'),
    18: ('Slayer', 120, False, 'Combat'),
    19: ('Farming', 120, False, 'Gathering'),
    20: ('Runecrafting', 99, False, 'Artisan'),
    21: ('Hunter', 99, False, 'Gathering'),
    22: ('Construction', 99, False, 'Support'),
    23: ('Summoning', 99, False, 'Combat'),
    24: ('Dungeoneering', 120, False, 'Support'),
    25: ('Divination', 99, False, 'Gathering'),
    26: ('Invention', 120, True, 'Elite'),
    27: ('Archaeology', 120, False, 'Gathering'),
    28: ('Necromancy', 120, False, 'Combat'),
}

# Alternate spellings and abbreviations seen on tracker pages and icon labels
SKILL_ALIASES = {
    OVERALL_ID: ['overall'],
    0: ['att', 'atk'],
    1: ['defense', 'def'],
    2: ['str'],
    3: ['hitpoints', 'hp', 'const', 'lifepoints'],
    4: ['range', 'ranging'],
    5: ['pray'],
    6: ['mage'],
    7: ['cook'],
    8: ['wc', 'wcing'],
    9: ['fletch', 'fletch.'],
    10: ['fish'],
    11: ['fm'],
    12: ['craft'],
    13: ['smith'],
    14: ['mine'],
    15: ['herb'],
    16: ['agil', 'agi'],
    17: ['thiev', 'thieve', 'thief'],
    18: ['slay'],
    19: ['farm'],
    20: ['rc', 'runecraft', 'runecraftin'],
    21: ['hunt'],
    22: ['con', 'cons', 'constr'],
    23: ['summ', 'summon'],
    24: ['dung', 'dg', 'dungeon'],
    25: ['div', 'divi'],
    26: ['inv', 'invent'],
    27: ['arch', 'arc', 'archae', 'archaeo'],
    28: ['necro', 'nec'],
}


def _alias_key(text):
    return ' '.join(re.sub(r'[^a-z ]', ' ', str(text).lower()).split())


def _build_alias_table():
    table = {'overall': OVERALL_ID}
    for skill_id, (name, _, _, _) in SKILL_DEFINITIONS.items():
        table[_alias_key(name)] = skill_id
    for skill_id, aliases in SKILL_ALIASES.items():
        for alias in aliases:
            table.setdefault(_alias_key(alias), skill_id)
    return table


ALIAS_TABLE = _build_alias_table()


def resolve_skill(label):
    """Return the skill id for a cell text / icon label, or None if it is not a skill"""
    if not label:
        return None
    key = _alias_key(label)
    if not key:
        return None
    return ALIAS_TABLE.get(key)


def skill_name(skill_id):
    if skill_id == OVERALL_ID:
        return 'Overall'
    definition = SKILL_DEFINITIONS.get(skill_id)
    return definition[0] if definition else f"Skill {skill_id}"


def max_level(skill_id):
    definition = SKILL_DEFINITIONS.get(skill_id)
    return definition[1] if definition else 99


def is_elite(skill_id):
    definition = SKILL_DEFINITIONS.get(skill_id)
    return definition[2] if definition else False


def skill_category(skill_id):
    definition = SKILL_DEFINITIONS.get(skill_id)
    return definition[3] if definition else None
