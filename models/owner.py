from sqlalchemy import Column, BigInteger, Integer, Text
from models.base import Base


class Owner(Base):
    """
    Author of a question, answer or comment.

    Keyed by the network-wide account id. Posts written by deleted or
    anonymous users all point at the placeholder row with account_id -1.
    """
    __tablename__ = "owner"

    account_id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False)
    profile_image = Column(Text, nullable=True)
    link = Column(Text, nullable=False)
    user_type = Column(Text, nullable=False)
    display_name = Column(Text, nullable=False)
    reputation = Column(Integer, nullable=False)
