"""Starter word list, loaded into an empty word store."""

import logging

from core.models import WordEntry

logger = logging.getLogger(__name__)


def get_seed_words() -> list[WordEntry]:
    """A few words across grades so a fresh install has something to drill."""
    return [
        WordEntry('1', 'Puppy', 'A young dog.', 'The puppy played in the grass.', 1, 'Easy'),
        WordEntry('2', 'Kitten', 'A young cat.', 'The kitten is sleeping.', 1, 'Easy'),
        WordEntry('3', 'Galaxy', 'A system of millions or billions of stars.',
                  'The Milky Way is our galaxy.', 4, 'Medium'),
        WordEntry('4', 'Photosynthesis', 'The process by which plants use sunlight to synthesize foods.',
                  'Photosynthesis requires chlorophyll.', 6, 'Hard'),
        WordEntry('5', 'Ephemeral', 'Lasting for a very short time.',
                  'Fashions are ephemeral, changing with every season.', 9, 'Medium'),
        WordEntry('6', 'Vicissitude',
                  'A change of circumstances or fortune, typically one that is unwelcome or unpleasant.',
                  'He was prepared for the vicissitudes of life.', 11, 'Hard'),
    ]


def seed_words_if_empty(storage) -> int:
    """Add the starter words when the store has none. Returns how many were added."""
    if storage.fetch_words():
        return 0
    words = get_seed_words()
    for word in words:
        storage.add_word(word)
    logger.info(f"Seeded {len(words)} starter words")
    return len(words)


if __name__ == '__main__':
    from server.app import create_storage

    logging.basicConfig(level=logging.INFO)
    added = seed_words_if_empty(create_storage())
    print(f"Added {added} words" if added else "Word list is not empty; nothing to do")
