"""Word pronunciation through an AudioPlayer."""

import logging

from .interfaces import AudioPlayer

logger = logging.getLogger(__name__)


def pronounce(word, player: AudioPlayer) -> bool:
    """Play the recorded audio for a word, or speak it. Failures are only logged."""
    try:
        if word.audio_url:
            player.play_url(word.audio_url)
        else:
            player.speak(word.word)
        return True
    except Exception as e:
        logger.warning(f"Audio playback failed for {word.word!r}: {e}")
        return False
