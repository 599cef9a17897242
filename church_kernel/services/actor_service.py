"""
ActorService -- persistence for actor profiles.

Responsibility:
    Create, look up, deactivate and soft-delete actors.  Authorization of
    who may provision whom is the gate's job and runs before any call
    here.

Architecture position:
    Kernel > Services -- imperative shell.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from church_kernel.domain.church import Actor, ActorRole
from church_kernel.domain.clock import Clock, SystemClock
from church_kernel.exceptions import ActorNotFoundError, ValidationError
from church_kernel.logging_config import get_logger
from church_kernel.models.actor import ActorModel

logger = get_logger("services.actor")


class ActorService:
    """
    Actor profile persistence.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Account and email flows are out of scope.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _model(self, uid: str) -> ActorModel:
        model = self._session.get(ActorModel, uid)
        if model is None:
            raise ActorNotFoundError(uid)
        return model

    def get(self, uid: str) -> Actor:
        """
        Raises:
            ActorNotFoundError: No actor with this uid.
        """
        return self._model(uid).to_dto()

    def find(self, uid: str) -> Actor | None:
        model = self._session.get(ActorModel, uid)
        return model.to_dto() if model is not None else None

    def create(self, actor: Actor, created_by_id: str | None = None) -> Actor:
        """
        Persist a new, already validated actor.

        Raises:
            ValidationError: The uid is taken.
        """
        if self._session.get(ActorModel, actor.uid) is not None:
            raise ValidationError("uid", f"actor '{actor.uid}' already exists")

        model = ActorModel.from_dto(actor, created_by_id, self._clock.now())
        savepoint = self._session.begin_nested()
        try:
            self._session.add(model)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise ValidationError("uid", f"actor '{actor.uid}' already exists") from None

        logger.info(
            "actor_created",
            extra={
                "uid": actor.uid,
                "role": actor.role.value,
                "diocese": actor.diocese,
                "parish": actor.parish,
                "created_by_id": created_by_id,
            },
        )
        return model.to_dto()

    def deactivate(self, uid: str, deactivated_by_id: str) -> Actor:
        """Mark an actor inactive.  Idempotent."""
        model = self._model(uid)
        if model.is_active:
            model.is_active = False
            model.updated_at = self._clock.now()
            self._session.flush()
            logger.info(
                "actor_deactivated",
                extra={"uid": uid, "deactivated_by_id": deactivated_by_id},
            )
        return model.to_dto()

    def soft_delete(self, uid: str, deleted_by_id: str) -> Actor:
        """Mark an actor deleted; the row stays for the audit trail."""
        model = self._model(uid)
        if not model.is_deleted:
            model.is_deleted = True
            model.is_active = False
            model.updated_at = self._clock.now()
            self._session.flush()
            logger.info(
                "actor_deleted",
                extra={"uid": uid, "deleted_by_id": deleted_by_id},
            )
        return model.to_dto()

    def list_by_diocese(self, diocese: str, role: ActorRole | None = None) -> list[Actor]:
        stmt = select(ActorModel).where(ActorModel.diocese == diocese).order_by(ActorModel.uid)
        if role is not None:
            stmt = stmt.where(ActorModel.role == role.value)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]
