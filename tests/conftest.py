import os
import tempfile

# Before any project import: keep the default engine and log files out of the working tree
os.environ.setdefault("PMS_DATABASE_URL", "sqlite://")
os.environ.setdefault("PMS_LOG_DIR", os.path.join(tempfile.gettempdir(), "pms_kalender_test_logs"))
os.environ.setdefault("PMS_ENV", "test")
os.environ.setdefault("PMS_ADMIN_PASSWORD", "")
