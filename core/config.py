"""Configuration constants for spellbee application."""

# Grades 1-11, plus 12 which is shown as "Group 3"
GRADES = list(range(1, 13))
GROUP_3_GRADE = 12
DIFFICULTIES = ['Easy', 'Medium', 'Hard']

# Contest setup
STAGES = ['Play-offs', 'Final']
CONTEST_TYPES = ['Internal', 'Interschool']
DEFAULT_STAGE = 'Play-offs'
DEFAULT_CONTEST_TYPE = 'Internal'
DEFAULT_MIN_ROUNDS = 5        # Scoreboard columns shown before any data
SKIPPED_WORD_TEXT = 'SKIPPED'
MAX_OPEN_CONTESTS = 50        # Live contests kept in memory by the API

# Drill weighting
NEW_WORD_WEIGHT = 20          # Never attempted
MISSED_WORD_WEIGHT = 50       # Latest attempt was incorrect
REVIEW_WORD_WEIGHT = 5        # Correct, but not yet mastered
MASTERED_WORD_WEIGHT = 1      # Correct streak above threshold
MASTERY_STREAK = 2            # Streaks strictly above this count as mastered
STAT_LOOKBACK = 500           # Records fetched per student, across all words

# Drill rewards
POINTS_PER_CORRECT = 10
COINS_PER_CORRECT = 1

# League tiers (minimum XP, name), ascending
LEAGUES = [
    (0, 'Paper'),
    (100, 'Iron'),
    (500, 'Bronze'),
    (1500, 'Gold'),
    (3000, 'Platinum'),
    (6000, 'Diamond'),
]

# Rank titles (minimum XP, title), ascending
RANK_TITLES = [
    (0, 'Novice Speller'),
    (1001, 'Word Explorer'),
    (3001, 'Vocabulary Knight'),
    (7001, 'Master of Letters'),
]
XP_CAP = 10000

# Payments
DEFAULT_PAYMENT_METHOD = 'Cash USD'
PAYMENT_STATUSES = ['pending', 'verified', 'rejected']
SPONSOR_TIERS = ['Gold', 'Silver', 'Bronze']

# Teacher accounts used when SPELLBEE_TEACHER_CREDENTIALS is not set
DEFAULT_TEACHER_CREDENTIALS = [
    ('teacher', 'bee2025'),
    ('coordinator', 'coord2025'),
]
