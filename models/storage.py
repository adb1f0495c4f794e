from sqlalchemy import Column, String, Text, BigInteger
from database.db import Base


class StorageEntry(Base):
    __tablename__ = "storage_entries"  # 키 → JSON 문서 저장소

    key = Column(String(64), primary_key=True)           # 논리 키 (예: qpi_grades)
    value = Column(Text, nullable=False)                 # 직렬화된 JSON 문서
    updated_at = Column(BigInteger, nullable=False)      # 마지막 저장 시각 (epoch ms)
