from sqlalchemy.orm import declarative_base

Base = declarative_base()


# Owner row shared by every post whose author account no longer exists
DELETED_ACCOUNT_ID = -1
DELETED_DISPLAY_NAME = "does_not_exist"
