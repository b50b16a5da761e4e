"""
Generated document records

Documents are produced elsewhere; this service only sweeps records whose
parent request has gone away.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from leavetrack.db.base import Base


class GeneratedDocument(Base):
    __tablename__ = "generated_documents"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    wfh_request_id = Column(Integer, ForeignKey("wfh_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    file_name = Column(String(255), nullable=False)
    status = Column(String(30), nullable=False, default="GENERATED")
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    signatures = relationship("DocumentSignature", back_populates="document")


class DocumentSignature(Base):
    __tablename__ = "document_signatures"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("generated_documents.id"), nullable=False, index=True)
    signer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)

    document = relationship("GeneratedDocument", back_populates="signatures")
