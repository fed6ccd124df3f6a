"""Fixed vocabulary for the shop domain plus tiny phrase-lookup helpers.

Latin words are matched on word boundaries; Thai has no spaces, so Thai
entries are matched as plain substrings.
"""
import re
from difflib import SequenceMatcher
from typing import Dict, Iterable, List, Optional, Tuple

HONORIFICS_LATIN = ["mr", "mrs", "ms", "miss", "dr", "khun", "k", "aunt", "auntie", "uncle",
                    "sir", "madam", "mister", "lady"]
HONORIFICS_THAI = ["คุณ", "พี่", "น้อง", "ป้า", "ลุง", "น้า", "เจ๊", "เฮีย", "ยาย", "ตา"]

ORDER_VERBS = ["orders", "order", "ordered", "wants", "want", "buys", "buy", "bought",
               "takes", "take", "needs", "need", "gets", "get"]
ORDER_VERBS_THAI = ["สั่ง", "ซื้อ", "เอา", "ขอ"]
PRONOUNS = ["i", "we", "me", "you", "he", "she", "they", "someone", "customer"]

DELIVERY_VERBS = ["ship", "ships", "shipped", "deliver", "delivers", "delivered", "send", "sends", "sent"]
DELIVERY_PREPOSITIONS = ["by", "to", "via", "with", "through"]
DELIVERY_THAI = ["ส่งโดย", "ให้ส่งโดย", "ฝากกับ", "ฝาก", "ส่งกับ"]

PAID_PHRASES = ["already paid", "paid already", "has paid", "have paid", "fully paid",
                "paid in full", "paid cash", "cash paid", "transferred", "paid",
                "จ่ายแล้ว", "โอนแล้ว", "ชำระแล้ว"]
UNPAID_PHRASES = ["not yet paid", "not paid", "hasnt paid", "unpaid",
                  "pay later", "will pay", "on credit", "credit", "owes", "owe", "owing", "on tab",
                  "ยังไม่จ่าย", "ยังไม่โอน", "ค้างไว้", "ค้าง", "ติดไว้", "เชื่อ"]
CREDIT_KEYWORDS = ["on credit", "credit", "owes", "owe", "owing", "on tab",
                   "เชื่อ", "ติดไว้", "ค้างไว้", "ค้าง"]
AMBIGUOUS_PAYMENT = ["payment", "pays", "pay", "cash", "transfer", "จ่าย", "โอน"]

CURRENCY_WORDS = ["baht", "bht", "thb", "บาท", "฿", "dollars", "dollar", "usd"]
UNIT_WORDS = ["bags", "bag", "bottles", "bottle", "cans", "can", "packs", "pack", "boxes", "box",
              "sacks", "sack", "crates", "crate", "cases", "case", "pieces", "piece", "pcs", "kg",
              "ถุง", "ขวด", "กระป๋อง", "แพ็ค", "ลัง", "กล่อง", "กระสอบ", "ชิ้น"]
QUANTITY_MARKERS = ["quantity", "qty", "x", "จำนวน"]
PRICE_MARKERS = ["price", "at", "each", "ราคา"]

SEPARATORS_RE = re.compile(r"\s*(?:,|;|\+|&|\band\b|กับ|และ)\s*")

# key (contained in a normalized catalog name) -> extra keywords for that entry
PRODUCT_ALIASES: Dict[str, List[str]] = {
    "ice": ["ice", "ไอซ์", "น้ำแข็ง"],
    "tube": ["tube", "tubes", "หลอด"],
    "crushed": ["crush", "crushed", "บด"],
    "coke": ["coca", "cola", "coc", "koke", "โค้ก"],
    "pepsi": ["peps", "pepsy", "เป๊ปซี่"],
    "beer": ["bier", "เบียร์"],
    "water": ["watter", "น้ำเปล่า"],
    "soda": ["sodar", "โซดา"],
    "coffee": ["cofee", "coffe", "กาแฟ"],
    "tea": ["tee", "ชา"],
    "singha": ["singh", "สิงห์"],
    "chang": ["ช้าง"],
    "leo": ["ลีโอ"],
    "น้ำแข็ง": ["ice", "แข็ง"],
    "โค้ก": ["coke", "coca", "โคก"],
    "เบียร์": ["beer"],
}

# word-level transcription slips seen on voice input
MISHEARINGS: Dict[str, str] = {
    "coak": "coke", "koke": "coke", "cok": "coke",
    "pepsy": "pepsi", "bier": "beer", "watter": "water",
    "ise": "ice", "iced": "ice", "tub": "tube", "toob": "tube",
    "oders": "orders", "odors": "orders", "orderd": "ordered",
    "shipp": "ship", "bot": "bottle", "battle": "bottle",
    "bahts": "baht", "bath": "baht",
}

FILLER_WORDS = ["um", "umm", "uh", "uhh", "er", "erm", "please", "pls", "okay so", "like",
                "ครับ", "ค่ะ", "คะ", "นะ", "จ้า", "จ๊ะ"]

NUMBER_WORDS: Dict[str, int] = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7,
    "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13,
    "fourteen": 14, "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50, "sixty": 60,
    "seventy": 70, "eighty": 80, "ninety": 90, "hundred": 100, "a dozen": 12, "dozen": 12,
}
THAI_DIGITS = str.maketrans("๐๑๒๓๔๕๖๗๘๙", "0123456789")
NUMBER_WORDS_THAI: Dict[str, int] = {
    "หนึ่ง": 1, "สอง": 2, "สาม": 3, "สี่": 4, "ห้า": 5, "หก": 6, "เจ็ด": 7, "แปด": 8, "เก้า": 9, "สิบ": 10,
}

STOCK_ADD_VERBS = ["restock", "add", "added", "refill", "เติม", "เพิ่ม"]
STOCK_SUBTRACT_VERBS = ["remove", "reduce", "subtract", "deduct", "cut", "ลด", "ตัด", "หัก"]
STOCK_SET_VERBS = ["set", "ปรับ"]
STOCK_LEFT_WORDS = ["left", "remaining", "เหลือ"]


def is_thai(word: str) -> bool:
    return any("\u0e00" <= ch <= "\u0e7f" for ch in word)


def alternation(words: Iterable[str]) -> str:
    """Regex alternation, longest first, Latin words bounded by \\b."""
    parts = []
    for w in sorted(set(words), key=len, reverse=True):
        esc = re.escape(w)
        parts.append(esc if is_thai(w) or not w[0].isalnum() else rf"\b{esc}\b")
    return "(?:" + "|".join(parts) + ")"


def find_phrase(text: str, vocab: Iterable[str]) -> Optional[Tuple[int, str]]:
    """Earliest occurrence of any vocab phrase in ``text`` as ``(position, phrase)``."""
    m = re.search(alternation(vocab), text.lower())
    if not m:
        return None
    return m.start(), m.group(0)


def fuzzy_in_vocab(token: str, vocab: Iterable[str], cutoff: float = 0.84) -> bool:
    t = token.lower()
    for w in vocab:
        if t == w or (len(t) > 3 and SequenceMatcher(None, t, w).ratio() >= cutoff):
            return True
    return False
