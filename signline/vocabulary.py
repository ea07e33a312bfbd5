# ============================================================
# vocabulary.py — MRT Lines & Practice Vocabulary
# ============================================================
# Static catalogue served by GET /game/start. Each line carries
# a handful of words; level 1 is fingerspelled letter by letter,
# level 2 is a single word sign.
# ============================================================

from typing import Literal

from signline.camel_model import CamelModel


class MRTLine(CamelModel):
    id: str
    name: str
    abbreviation: str
    color: str
    description: str
    stations: list[str]


class VocabularyWord(CamelModel):
    id: str
    word: str
    level: Literal[1, 2]
    meaning: str
    cultural_note: str | None = None


MRT_LINES: list[MRTLine] = [
    MRTLine(
        id="north-south",
        name="North-South Line",
        abbreviation="NSL",
        color="#D42E12",
        description="From Marina Bay to Jurong East",
        stations=["Marina Bay", "Orchard", "Yishun", "Jurong East"],
    ),
    MRTLine(
        id="east-west",
        name="East-West Line",
        abbreviation="EWL",
        color="#009645",
        description="From Pasir Ris to Tuas Link",
        stations=["Pasir Ris", "Tampines", "Bugis", "Jurong East"],
    ),
    MRTLine(
        id="north-east",
        name="North-East Line",
        abbreviation="NEL",
        color="#9900AA",
        description="From HarbourFront to Punggol",
        stations=["HarbourFront", "Chinatown", "Serangoon", "Punggol"],
    ),
    MRTLine(
        id="circle",
        name="Circle Line",
        abbreviation="CCL",
        color="#FA9E0D",
        description="The orbital line connecting all radials",
        stations=["Dhoby Ghaut", "Botanic Gardens", "Marina Bay"],
    ),
    MRTLine(
        id="downtown",
        name="Downtown Line",
        abbreviation="DTL",
        color="#005EC4",
        description="From Bukit Panjang to Expo",
        stations=["Bukit Panjang", "Little India", "Bayfront", "Expo"],
    ),
    MRTLine(
        id="tel",
        name="Thomson-East Coast Line",
        abbreviation="TEL",
        color="#8B4513",
        description="From Tuas Link to Bright Hill",
        stations=["Tuas Link", "Bright Hill"],
    ),
]


def _word(id: str, word: str, level: int, meaning: str, cultural_note: str | None = None) -> VocabularyWord:
    return VocabularyWord(id=id, word=word, level=level, meaning=meaning, cultural_note=cultural_note)


# The Thomson-East Coast line has no vocabulary yet
VOCABULARY: dict[str, list[VocabularyWord]] = {
    "north-south": [
        _word("ns-hello", "HELLO", 1, "Greeting"),
        _word("ns-mrt", "MRT", 1, "Mass Rapid Transit", "Singapore's train system"),
        _word("ns-thanks", "THANK YOU", 2, "Expression of gratitude"),
        _word("ns-yes", "YES", 1, "Affirmative"),
    ],
    "east-west": [
        _word("ew-food", "FOOD", 1, "Sustenance"),
        _word("ew-eat", "EAT", 2, "To consume food", "Hawker culture is UNESCO heritage!"),
        _word("ew-good", "GOOD", 1, "Quality indicator"),
        _word("ew-water", "WATER", 1, "H2O"),
    ],
    "north-east": [
        _word("ne-help", "HELP", 2, "Assistance"),
        _word("ne-love", "LOVE", 2, "Affection"),
        _word("ne-name", "NAME", 1, "Identifier"),
    ],
    "circle": [
        _word("cl-nice", "NICE", 1, "Pleasant"),
        _word("cl-friend", "FRIEND", 2, "Companion"),
        _word("cl-happy", "HAPPY", 2, "Joyful"),
    ],
    "downtown": [
        _word("dt-sorry", "SORRY", 2, "Apology"),
        _word("dt-please", "PLEASE", 2, "Polite request"),
        _word("dt-no", "NO", 1, "Negative"),
    ],
}


def get_line(line_id: str) -> MRTLine | None:
    return next((line for line in MRT_LINES if line.id == line_id), None)


def get_words_by_line(line_id: str) -> list[VocabularyWord]:
    return VOCABULARY.get(line_id, [])


def get_word_by_id(line_id: str, word_id: str) -> VocabularyWord | None:
    return next((w for w in get_words_by_line(line_id) if w.id == word_id), None)


def all_words() -> list[VocabularyWord]:
    return [word for words in VOCABULARY.values() for word in words]
