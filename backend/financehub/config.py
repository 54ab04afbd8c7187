# backend/financehub/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the working directory by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///financehub.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Role-selection login
    MANAGER_NAME = os.environ.get("MANAGER_NAME", "Financial Manager")
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "12"))

    # AI summary (Gemini generateContent REST endpoint)
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    SUMMARY_MODEL = os.environ.get("SUMMARY_MODEL", "gemini-3-pro-preview")
    SUMMARY_API_BASE = os.environ.get(
        "SUMMARY_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
    )
    SUMMARY_TIMEOUT_SECONDS = float(os.environ.get("SUMMARY_TIMEOUT_SECONDS", "60"))
    SUMMARY_THINKING_BUDGET = int(os.environ.get("SUMMARY_THINKING_BUDGET", "16000"))
    SUMMARY_LANGUAGE = os.environ.get("SUMMARY_LANGUAGE", "Arabic")

    # Seconds between keep-alive comments on the change feed stream
    FEED_HEARTBEAT_SECONDS = float(os.environ.get("FEED_HEARTBEAT_SECONDS", "15"))
