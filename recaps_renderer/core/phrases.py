"""Word-class tables consulted by the caption grouping heuristic.

WHY: Captions of one to three words read naturally only when they keep
phrases together: "the cell", "in the nucleus", "right now". The
grouping heuristic decides chunk sizes by looking the next word(s) up
in these tables, so they are kept as plain data next to the algorithm
rather than buried in it.

HOW: Frozen sets of lowercase English words per class, plus two phrase
tables keyed by the space-joined lowercase phrase.

RULES:
- Entries are lowercase with no punctuation
- Sets are frozen — never mutate them at runtime
- Only English is covered; scripts are generated in English
"""

from typing import FrozenSet

ARTICLES: FrozenSet[str] = frozenset({"a", "an", "the"})

PREPOSITIONS: FrozenSet[str] = frozenset({
    "about", "above", "across", "after", "against", "along", "among", "around",
    "at", "before", "behind", "below", "beneath", "beside", "between", "beyond",
    "by", "during", "for", "from", "in", "inside", "into", "near", "of", "off",
    "on", "onto", "out", "outside", "over", "past", "since", "through",
    "throughout", "to", "toward", "towards", "under", "until", "up", "upon",
    "with", "within", "without",
})

AUXILIARIES: FrozenSet[str] = frozenset({
    "am", "is", "are", "was", "were", "be", "been", "being",
    "do", "does", "did", "has", "have", "had",
    "can", "could", "will", "would", "shall", "should", "may", "might", "must",
    "isn't", "aren't", "wasn't", "weren't", "don't", "doesn't", "didn't",
    "can't", "won't", "wouldn't", "shouldn't", "couldn't", "haven't", "hasn't",
})

PRONOUNS: FrozenSet[str] = frozenset({
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
    "my", "your", "his", "its", "our", "their", "this", "that", "these", "those",
    "who", "what", "which", "i'm", "you're", "it's", "we're", "they're",
    "that's", "there", "here",
})

CONJUNCTIONS: FrozenSet[str] = frozenset({
    "and", "but", "or", "nor", "so", "yet", "because", "although", "though",
    "if", "unless", "while", "when", "whereas", "where", "then", "than",
})

QUANTIFIERS: FrozenSet[str] = frozenset({
    "all", "any", "both", "each", "every", "few", "many", "more", "most",
    "much", "no", "none", "several", "some", "one", "two", "three", "four",
    "five", "six", "seven", "eight", "nine", "ten", "hundred", "thousand",
    "million", "billion",
})

IMPACT_WORDS: FrozenSet[str] = frozenset({
    "amazing", "incredible", "insane", "crazy", "wild", "huge", "massive",
    "boom", "literally", "actually", "bro", "wow", "fire", "legendary",
    "brilliant", "genius", "shocking", "unreal", "epic", "iconic",
})
"""Words shown alone on screen for emphasis."""

TWO_WORD_PHRASES: FrozenSet[str] = frozenset({
    "right now", "for real", "no cap", "of course", "at least", "at all",
    "so basically", "each other", "as well", "kind of", "sort of", "a lot",
    "you know", "in fact", "for example", "even though", "such as",
    "because of", "instead of", "rather than", "let's go", "lowkey crazy",
    "high key", "low key", "big brain",
})

THREE_WORD_PHRASES: FrozenSet[str] = frozenset({
    "in order to", "as well as", "on the other", "at the same",
    "one of the", "a lot of", "as soon as", "in front of", "in terms of",
    "at the end", "all of the", "some of the", "most of the", "because of the",
    "due to the", "as long as", "no matter what",
})
