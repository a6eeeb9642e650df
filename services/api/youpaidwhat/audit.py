import uuid
from sqlalchemy.orm import Session

from .models import Audit as AuditModel

def save_audit(db: Session, *, actor: str, action: str, contract_id: str, detail: str | None = None):
    # caller commits together with the change being audited
    db.add(AuditModel(
        id=str(uuid.uuid4()),
        actor=actor,
        action=action,
        contract_id=contract_id,
        detail=detail,
    ))
