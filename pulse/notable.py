"""
Curated table of notable individual tech/AI accounts.

Individuals only, no brand accounts. Used to boost importance scores and to
tell the scoring model whose opinions carry weight.

tier 1 = major figure (+4), tier 2 = well known in tech circles (+3),
tier 3 = notable in a specific community (+2).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

TIER_BOOST = {1: 4, 2: 3, 3: 2}

_ACCOUNTS: List[Tuple[str, str, int]] = [
    # AI lab leaders and executives
    ("sama", "Sam Altman", 1),
    ("gdb", "Greg Brockman", 1),
    ("karpathy", "Andrej Karpathy", 1),
    ("ylecun", "Yann LeCun", 1),
    ("demishassabis", "Demis Hassabis", 1),
    ("DarioAmodei", "Dario Amodei", 1),
    ("AndrewYNg", "Andrew Ng", 1),
    ("jackclarkSF", "Jack Clark", 1),
    ("mustafasuleyman", "Mustafa Suleyman", 1),
    ("jeffdean", "Jeff Dean", 1),
    ("AmandaAskell", "Amanda Askell", 2),
    ("janleike", "Jan Leike", 2),
    ("OfficialLoganK", "Logan Kilpatrick", 2),
    ("alexalbert__", "Alex Albert", 2),
    ("drjimfan", "Jim Fan", 2),
    # Researchers
    ("fchollet", "Francois Chollet", 1),
    ("GaryMarcus", "Gary Marcus", 1),
    ("emollick", "Ethan Mollick", 1),
    ("ESYudkowsky", "Eliezer Yudkowsky", 1),
    ("jeremyphoward", "Jeremy Howard", 2),
    ("Thom_Wolf", "Thomas Wolf", 2),
    ("percyliang", "Percy Liang", 2),
    ("miles_brundage", "Miles Brundage", 2),
    ("TheZvi", "Zvi Mowshowitz", 2),
    ("lilianweng", "Lillian Weng", 2),
    ("_akhaliq", "AK", 2),
    ("_jasonwei", "Jason Wei", 2),
    ("DanHendrycks", "Dan Hendrycks", 2),
    ("rasbt", "Sebastian Raschka", 2),
    ("goodside", "Riley Goodside", 2),
    ("NeelNanda5", "Neel Nanda", 3),
    # Founders and operators
    ("elonmusk", "Elon Musk", 1),
    ("satyanadella", "Satya Nadella", 1),
    ("sundarpichai", "Sundar Pichai", 1),
    ("tobi", "Tobi Lutke", 1),
    ("dhh", "David Heinemeier Hansson", 1),
    ("rauchg", "Guillermo Rauch", 1),
    ("paulgraham", "Paul Graham", 1),
    ("patrickc", "Patrick Collison", 1),
    ("amasad", "Amjad Masad", 1),
    ("levelsio", "Pieter Levels", 2),
    ("mitchellh", "Mitchell Hashimoto", 2),
    ("AravSrinivas", "Aravind Srinivas", 2),
    ("realGeorgeHotz", "George Hotz", 2),
    ("ClementDelangue", "Clement Delangue", 2),
    ("alexandr_wang", "Alexandr Wang", 2),
    ("clattner_llvm", "Chris Lattner", 2),
    ("hwchase17", "Harrison Chase", 2),
    # Engineers and educators
    ("ID_AA_Carmack", "John Carmack", 1),
    ("kelseyhightower", "Kelsey Hightower", 1),
    ("swyx", "swyx", 2),
    ("simonw", "Simon Willison", 2),
    ("ThePrimeagen", "ThePrimeagen", 2),
    ("addyosmani", "Addy Osmani", 2),
    ("dan_abramov", "Dan Abramov", 2),
    ("leerob", "Lee Robinson", 2),
    ("antirez", "Salvatore Sanfilippo", 2),
    ("VictorTaelin", "Victor Taelin", 2),
    ("mckaywrigley", "McKay Wrigley", 2),
    ("mattshumer_", "Matt Shumer", 2),
    ("deedydas", "Deedy Das", 2),
    ("t3dotgg", "Theo", 2),
    ("GergelyOrosz", "Gergely Orosz", 2),
    ("thdxr", "Dax Raad", 3),
    # Investors and commentators
    ("pmarca", "Marc Andreessen", 1),
    ("garrytan", "Garry Tan", 1),
    ("balajis", "Balaji Srinivasan", 1),
    ("lexfridman", "Lex Fridman", 1),
    ("benedictevans", "Benedict Evans", 2),
    ("saranormous", "Sarah Guo", 2),
    ("rowancheung", "Rowan Cheung", 2),
    ("ArtificialAnlys", "Artificial Analysis", 2),
    # Seen repeatedly in discovered tweets
    ("bytes032", "bytes032", 3),
    ("scaling01", "Scaling01", 3),
    ("rohanpaul_ai", "Rohan Paul", 3),
    ("pierceboggan", "Pierce Boggan", 3),
]


@dataclass(frozen=True)
class NotableAccount:
    handle: str
    name: str
    tier: int

    @property
    def boost(self) -> int:
        return TIER_BOOST[self.tier]


_HANDLE_MAP: Dict[str, NotableAccount] = {
    handle.lower(): NotableAccount(handle=handle, name=name, tier=tier) for handle, name, tier in _ACCOUNTS
}

TOTAL_NOTABLE_ACCOUNTS = len(_HANDLE_MAP)


def get_notable_info(handle: Optional[str]) -> Optional[NotableAccount]:
    """Case-insensitive lookup, with or without a leading @."""
    if not handle:
        return None
    return _HANDLE_MAP.get(handle.strip().lstrip("@").lower())


def author_boost(handle: Optional[str]) -> int:
    notable = get_notable_info(handle)
    return notable.boost if notable else 0


def notable_handles_for_prompt() -> str:
    tier1 = [f"@{a.handle} ({a.name})" for a in _HANDLE_MAP.values() if a.tier == 1]
    tier2 = [f"@{a.handle} ({a.name})" for a in _HANDLE_MAP.values() if a.tier == 2]
    return f"TIER 1 (major figures): {', '.join(tier1)}\nTIER 2 (well-known): {', '.join(tier2)}"
