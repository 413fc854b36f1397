"""
FFXIV game configuration factory.

Creates a GameConfig populated with the Final Fantasy XIV constants the
discard rules, inventory scanner and market client need.
"""

from typing import Optional

from core.game_config import GameConfig

# ─── Item UI categories ───────────────────────────
CATEGORY_NONE = 0            # no UI category: unobtainable / internal items
CATEGORY_CRYSTAL = 59
CATEGORY_CURRENCY = 100

# ─── Inventory containers (InventoryType) ─────────
INVENTORY_1 = 0
INVENTORY_2 = 1
INVENTORY_3 = 2
INVENTORY_4 = 3

ARMOURY_OFF_HAND = 3200
ARMOURY_HEAD = 3201
ARMOURY_BODY = 3202
ARMOURY_HANDS = 3203
ARMOURY_WAIST = 3204
ARMOURY_LEGS = 3205
ARMOURY_FEET = 3206
ARMOURY_EARRINGS = 3207
ARMOURY_NECKLACE = 3208
ARMOURY_BRACELETS = 3209
ARMOURY_RINGS = 3300
ARMOURY_MAIN_HAND = 3500

# Highest item level that dungeon gear drops at; armoury items at or
# above this are never touched by default.
MAX_DUNGEON_ITEM_LEVEL = 705

# Preorder earrings: cannot be re-obtained once discarded
PINNED_BLACKLIST = frozenset({16039, 24589, 33648, 41081})
DEFAULT_BLACKLIST = (2820,)

DISCARD_PROMPT_PATTERNS = {
    "en": [
        r"^Discard .+\?$",
        r"^Discard the collectable .+\?$",
    ],
    "de": [
        r"^.+ wegwerfen\?$",
        r"^Sammlerstück .+ wegwerfen\?$",
    ],
    "fr": [
        r"^Jeter .+ \?$",
        r"^Jeter l'objet de collection .+ \?$",
    ],
    "ja": [
        r"^.+を捨てます。よろしいですか？$",
        r"^収集品.+を捨てます。よろしいですか？$",
    ],
}

DATA_CENTERS = {
    # NA
    "Aether": ["Adamantoise", "Cactuar", "Faerie", "Gilgamesh", "Jenova",
               "Midgardsormr", "Sargatanas", "Siren"],
    "Primal": ["Behemoth", "Excalibur", "Exodus", "Famfrit", "Hyperion",
               "Lamia", "Leviathan", "Ultros"],
    "Crystal": ["Balmung", "Brynhildr", "Coeurl", "Diabolos", "Goblin",
                "Malboro", "Mateus", "Zalera"],
    # EU
    "Chaos": ["Cerberus", "Louisoix", "Moogle", "Omega", "Phantom",
              "Ragnarok", "Sagittarius", "Spriggan"],
    "Light": ["Alpha", "Lich", "Odin", "Phoenix", "Raiden", "Shiva",
              "Twintania", "Zodiark"],
    # JP
    "Elemental": ["Aegis", "Atomos", "Carbuncle", "Garuda", "Gungnir",
                  "Kujata", "Ramuh", "Tonberry", "Typhon", "Unicorn"],
    "Gaia": ["Alexander", "Bahamut", "Durandal", "Fenrir", "Ifrit",
             "Ridill", "Tiamat", "Ultima"],
    "Mana": ["Anima", "Asura", "Chocobo", "Hades", "Ixion", "Masamune",
             "Pandaemonium", "Titan"],
    "Meteor": ["Belias", "Mandragora", "Shinryu", "Valefor", "Yojimbo",
               "Zeromus"],
    # OCE
    "Materia": ["Bismarck", "Ravana", "Sephirot", "Sophia", "Zurvan"],
}


def create_ffxiv_config(market_api_base: Optional[str] = None) -> GameConfig:
    """Create a GameConfig for Final Fantasy XIV.

    Args:
        market_api_base: Override the Universalis base URL.
            Defaults to config.MARKET_API_BASE.
    """
    from config import MARKET_API_BASE

    world_to_dc = {}
    for dc, worlds in DATA_CENTERS.items():
        for world in worlds:
            world_to_dc[world.lower()] = dc

    return GameConfig(
        game_id="ffxiv",

        # Eligibility
        excluded_category_ids=frozenset({CATEGORY_NONE, CATEGORY_CRYSTAL, CATEGORY_CURRENCY}),
        pinned_blacklist=PINNED_BLACKLIST,
        default_blacklist=DEFAULT_BLACKLIST,

        # Containers
        inventory_containers=(INVENTORY_1, INVENTORY_2, INVENTORY_3, INVENTORY_4),
        armoury_main_off_hand=(ARMOURY_MAIN_HAND, ARMOURY_OFF_HAND),
        armoury_left_side=(ARMOURY_HEAD, ARMOURY_BODY, ARMOURY_HANDS,
                           ARMOURY_LEGS, ARMOURY_FEET),
        armoury_right_side=(ARMOURY_EARRINGS, ARMOURY_NECKLACE,
                            ARMOURY_BRACELETS, ARMOURY_RINGS),
        max_gear_item_level=MAX_DUNGEON_ITEM_LEVEL,

        # Prompt
        discard_prompt_patterns=DISCARD_PROMPT_PATTERNS,

        # Market
        market_api_base=market_api_base or MARKET_API_BASE,
        world_to_data_center=world_to_dc,
    )
