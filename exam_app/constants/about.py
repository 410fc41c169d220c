"""Static metadata describing the exam practice service."""

APP_NAME = "ExamPractice"
APP_VERSION = "0.2.0"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ExamPractice lets you paste multiple-choice question sets, take timed exams, "
    "review scored results, drill weak areas and share exams with a public leaderboard."
)
