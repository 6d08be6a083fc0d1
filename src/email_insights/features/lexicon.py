"""
Subject Line Lexicon
====================

Named predicates over subject lines: curated term lists matched on word
boundaries (multi-word phrases included) plus structural checks such as emoji,
punctuation, casing, numbers and price anchoring.

Example Usage:
--------------
>>> from email_insights.features import lexicon
>>>
>>> subject = "Last chance: 30% off ends tonight ⏰"
>>> [c.key for c in lexicon.matching_categories(subject)]
['deadline', 'savings', 'emoji', 'number', 'percent']
>>> lexicon.length_bin(subject)['key']
'31-50'
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Category:
    """A named subject-line predicate."""
    key: str
    label: str
    predicate: Callable[[str], bool]

    def matches(self, subject: str) -> bool:
        return bool(subject) and self.predicate(subject)


# (key, label, lower_bound, upper_bound); upper bound None means open-ended
LENGTH_BINS: Tuple[Tuple[str, str, int, Optional[int]], ...] = (
    ('0-30', '0-30 chars', 0, 30),
    ('31-50', '31-50 chars', 31, 50),
    ('51-70', '51-70 chars', 51, 70),
    ('71+', '71+ chars', 71, None),
)


def length_bin(subject: str) -> Dict[str, object]:
    """Length bin for a (stripped) subject line."""
    n = len((subject or '').strip())
    for key, label, low, high in LENGTH_BINS:
        if high is None or n <= high:
            break
    return {'key': key, 'label': label, 'range': (low, high)}


def normalize(subject: str) -> str:
    """Lower-case, unify apostrophes and collapse whitespace."""
    text = (subject or '').replace('’', "'").replace('‘', "'").lower()
    return re.sub(r'\s+', ' ', text).strip()


def _term_pattern(terms: Sequence[str]):
    escaped = sorted((re.escape(normalize(t)) for t in terms), key=len, reverse=True)
    return re.compile(r"(?<![a-z0-9])(?:" + "|".join(escaped) + r")(?![a-z0-9])")


def term_matcher(terms: Sequence[str]) -> Callable[[str], bool]:
    """Word-boundary matcher for a list of words or phrases."""
    pattern = _term_pattern(terms)
    return lambda subject: pattern.search(normalize(subject)) is not None


DEADLINE_TERMS = (
    'today', 'tonight', 'now', 'ends', 'ending', 'ends soon', 'expires', 'expiring',
    'last chance', 'last day', 'final', 'final hours', 'hours left', 'midnight',
    '24 hours', '48 hours', 'deadline', 'hurry', "don't miss", 'before it ends',
)
SCARCITY_TERMS = (
    'limited', 'limited edition', 'only', 'few left', 'almost gone', 'selling fast',
    'low stock', 'running out', 'while supplies last', 'last few', 'going fast',
)
SAVINGS_TERMS = (
    'sale', 'sales', 'deal', 'deals', 'discount', 'discounts', 'off', 'save', 'savings',
    'clearance', 'markdown', 'markdowns', 'coupon', 'promo', 'bogo', 'half price',
)
FREE_TERMS = ('free', 'complimentary', 'on us', 'no cost', 'freebie')
NEWNESS_TERMS = (
    'new', 'just in', 'just launched', 'introducing', 'new arrivals', 'arrivals',
    'launch', 'launching', 'debut', 'meet the', 'first look', 'fresh',
)
EXCLUSIVITY_TERMS = (
    'exclusive', 'vip', 'members only', 'insider', 'insiders', 'early access',
    'invitation', 'invite', 'invited', 'private', 'secret',
)
CURIOSITY_TERMS = (
    'surprise', 'mystery', 'guess', 'revealed', 'reveal', 'did you know',
    "you won't believe", 'psst', 'sneak peek', 'find out', 'something special',
)
SOCIAL_PROOF_TERMS = (
    'bestseller', 'bestsellers', 'best seller', 'best sellers', 'best-selling',
    'top rated', 'top-rated', 'most loved', 'customer favorite', 'fan favorite',
    'favorite', 'favourites', 'favorites', 'reviews', 'loved by', 'trending', 'popular',
)
GIFTING_TERMS = (
    'gift', 'gifts', 'gifting', 'gift guide', 'present', 'presents', 'stocking stuffer',
    'stocking stuffers', 'for her', 'for him',
)
SEASONAL_TERMS = (
    'holiday', 'holidays', 'christmas', 'black friday', 'cyber monday', 'thanksgiving',
    'valentine', "valentine's", "mother's day", "father's day", 'halloween', 'easter',
    'new year', 'summer', 'spring', 'winter', 'fall', 'autumn', 'labor day', 'memorial day',
)
RESTOCK_TERMS = ('back in stock', 'restock', 'restocked', 'back again', 'is back', 'are back')
SHIPPING_TERMS = ('shipping', 'free shipping', 'delivery', 'ships', 'ship', 'arrives', 'order by')
LOYALTY_TERMS = ('points', 'rewards', 'reward', 'loyalty', 'member', 'members', 'double points', 'perks')
EDUCATION_TERMS = (
    'how to', 'guide', 'tips', 'learn', 'tutorial', 'ways to', 'behind the scenes',
    'recipe', 'recipes', 'explained', 'the science', 'why',
)
APOLOGY_TERMS = ('oops', 'sorry', 'apologies', 'correction', 'mistake', 'we messed up', 'try again')

IMPERATIVE_VERBS = (
    'shop', 'save', 'get', 'discover', 'buy', 'grab', 'claim', 'enjoy', 'see',
    'explore', 'find', 'unlock', 'upgrade', 'try', 'meet', 'treat', 'stock',
)

_YOU_RE = re.compile(r"(?<![a-z])(?:you|your|you're|yours|you've|you'll)(?![a-z])")
_FIRST_NAME_RE = re.compile(
    r"\{\{?\s*(?:first[\s_-]?name|person\.first_name)\s*\}?\}|%first_?name%|\*\|first_?name\|\*|\[first_?name\]",
    re.IGNORECASE,
)
_EMOJI_RE = re.compile(
    "["
    "\U0001F000-\U0001FAFF"   # pictographs, emoticons, transport, symbols
    "\u2600-\u27BF"           # misc symbols and dingbats
    "\u2B00-\u2BFF"           # arrows and stars
    "\u231A-\u23FF"           # watches, hourglasses, media controls
    "\u3030\u303D\u3297\u3299"
    "]"
)
_ALL_CAPS_RE = re.compile(r"\b[A-Z]{2,}\b")
_CAPS_CODE_RE = re.compile(r"[A-Z]{2,}\d+")
_NUMBER_RE = re.compile(r"\d")
_CURRENCY_RE = re.compile(r"[$£€]\s?\d|\d\s?(?:usd|eur|gbp)\b|[$£€]", re.IGNORECASE)
_BRACKETS_RE = re.compile(r"[\[\](){}]")
_LEADING_PUNCT_RE = re.compile(r"^\W+")


def has_personalization(subject: str) -> bool:
    return bool(_YOU_RE.search(normalize(subject)) or _FIRST_NAME_RE.search(subject or ''))


def has_emoji(subject: str) -> bool:
    return _EMOJI_RE.search(subject or '') is not None


def has_all_caps_word(subject: str) -> bool:
    # discount codes like SAVE20 are not shouting
    return _ALL_CAPS_RE.search(_CAPS_CODE_RE.sub('x', subject or '')) is not None


def has_price_anchor(subject: str) -> bool:
    return _CURRENCY_RE.search(subject or '') is not None


def is_imperative_start(subject: str) -> bool:
    text = _LEADING_PUNCT_RE.sub('', normalize(subject))
    first = text.split(' ', 1)[0] if text else ''
    return first in IMPERATIVE_VERBS


CATEGORIES: Tuple[Category, ...] = (
    Category('deadline', 'Deadline & Urgency', term_matcher(DEADLINE_TERMS)),
    Category('scarcity', 'Scarcity', term_matcher(SCARCITY_TERMS)),
    Category('savings', 'Savings & Discounts', term_matcher(SAVINGS_TERMS)),
    Category('free', 'Free Offer', term_matcher(FREE_TERMS)),
    Category('newness', 'New Arrivals & Launches', term_matcher(NEWNESS_TERMS)),
    Category('exclusivity', 'Exclusivity & VIP', term_matcher(EXCLUSIVITY_TERMS)),
    Category('personalization', 'Personalization', has_personalization),
    Category('curiosity', 'Curiosity & Teasers', term_matcher(CURIOSITY_TERMS)),
    Category('social_proof', 'Social Proof & Bestsellers', term_matcher(SOCIAL_PROOF_TERMS)),
    Category('gifting', 'Gifting', term_matcher(GIFTING_TERMS)),
    Category('seasonal', 'Seasonal & Holiday', term_matcher(SEASONAL_TERMS)),
    Category('restock', 'Back in Stock', term_matcher(RESTOCK_TERMS)),
    Category('shipping', 'Shipping & Delivery', term_matcher(SHIPPING_TERMS)),
    Category('loyalty', 'Loyalty & Rewards', term_matcher(LOYALTY_TERMS)),
    Category('education', 'Guides & Education', term_matcher(EDUCATION_TERMS)),
    Category('apology', 'Apology & Oops', term_matcher(APOLOGY_TERMS)),
    Category('emoji', 'Emoji', has_emoji),
    Category('question', 'Question Mark', lambda s: '?' in s),
    Category('exclamation', 'Exclamation Mark', lambda s: '!' in s),
    Category('all_caps', 'ALL CAPS Word', has_all_caps_word),
    Category('number', 'Contains a Number', lambda s: _NUMBER_RE.search(s) is not None),
    Category('percent', 'Percent Sign', lambda s: '%' in s),
    Category('price', 'Price Anchoring', has_price_anchor),
    Category('brackets', 'Brackets', lambda s: _BRACKETS_RE.search(s) is not None),
    Category('imperative', 'Starts with a Verb', is_imperative_start),
)

CATEGORY_BY_KEY: Dict[str, Category] = {c.key: c for c in CATEGORIES}


def matching_categories(subject: str, categories: Sequence[Category] = CATEGORIES) -> List[Category]:
    """Every category whose predicate matches ``subject``, in declaration order."""
    return [c for c in categories if c.matches(subject)]
