import os

# Must run before config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["VALKEY_HOST"] = ""
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["LOG_FILE"] = ""
os.environ["MIN_SAMPLE_SIZE"] = "30"
os.environ["RESULTS_TIMEZONE"] = "UTC"
