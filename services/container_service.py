"""
Container Service - lifecycle of the containers in one packing session.

States: OPEN -> COMPLETED -> LABELED (LABELED repeats for reprints).
Only one container may be OPEN at a time, and a COMPLETED container's
lines never change again.
"""

import time
import structlog
from datetime import datetime, timezone
from typing import Callable, List, Optional

from models.container import (
    Container,
    ContainerStatus,
    is_valid_container_transition,
)
from exceptions import (
    ContainerNotFoundError,
    ContainerNotOpenError,
    OpenContainerExistsError,
    EmptyContainerError,
    InvalidContainerTransitionError,
    ContainerRemovalNotConfirmedError,
)

logger = structlog.get_logger(__name__)


class ContainerService:
    """
    Container lifecycle for a single packing session.

    Holds the session's containers in creation order. Line contents are
    edited by the allocation ledger; this class only governs status.
    """

    def __init__(
        self,
        id_prefix: str = "CUST001",
        clock: Callable[[], float] = time.time
    ):
        self.id_prefix = id_prefix
        self._clock = clock
        self._containers: List[Container] = []
        self._next_sequence = 1

    # ===================
    # READ OPERATIONS
    # ===================

    @property
    def containers(self) -> List[Container]:
        return list(self._containers)

    def get(self, container_id: str) -> Container:
        """
        Get container by ID.

        Raises:
            ContainerNotFoundError: If container not found
        """
        for container in self._containers:
            if container.id == container_id:
                return container
        raise ContainerNotFoundError(container_id)

    @property
    def latest(self) -> Optional[Container]:
        return self._containers[-1] if self._containers else None

    @property
    def open_container(self) -> Optional[Container]:
        for container in self._containers:
            if container.is_open:
                return container
        return None

    def require_open(self, container_id: str) -> Container:
        """
        Get a container that may still be edited.

        Raises:
            ContainerNotFoundError: If container not found
            ContainerNotOpenError: If the container is completed or labeled
        """
        container = self.get(container_id)
        if not container.is_open:
            raise ContainerNotOpenError(container_id, container.status.value)
        return container

    # ===================
    # LIFECYCLE
    # ===================

    def create(self) -> Container:
        """
        Start a new container.

        Raises:
            OpenContainerExistsError: If the latest container is not completed yet
        """
        latest = self.latest
        if latest is not None and latest.is_open:
            logger.warning("container_create_rejected", open_container=latest.id)
            raise OpenContainerExistsError(latest.id)

        sequence = self._next_sequence
        container = Container(
            id=self._generate_id(sequence),
            sequence=sequence,
            created_at=datetime.now(timezone.utc),
        )
        self._containers.append(container)
        self._next_sequence += 1

        logger.info("container_created", container_id=container.id, sequence=sequence)
        return container

    def complete(self, container_id: str) -> Container:
        """
        Seal an OPEN container.

        Raises:
            EmptyContainerError: If nothing was assigned to it
            InvalidContainerTransitionError: If it is not OPEN
        """
        container = self.get(container_id)
        self._check_transition(container, ContainerStatus.COMPLETED)

        if not container.lines:
            logger.warning("container_complete_rejected_empty", container_id=container_id)
            raise EmptyContainerError(container_id)

        container.status = ContainerStatus.COMPLETED
        container.completed_at = datetime.now(timezone.utc)

        logger.info("container_completed", container_id=container_id, lines=len(container.lines))
        return container

    def mark_labeled(self, container_id: str) -> Container:
        """
        Record that the label was printed. Repeatable; contents never change.

        Raises:
            InvalidContainerTransitionError: If the container is still OPEN
        """
        container = self.get(container_id)
        self._check_transition(container, ContainerStatus.LABELED)

        if container.status != ContainerStatus.LABELED:
            container.status = ContainerStatus.LABELED
            logger.info("container_labeled", container_id=container_id)
        else:
            logger.info("container_label_reprinted", container_id=container_id)

        return container

    def remove(self, container_id: str, confirm: bool = False) -> Container:
        """
        Discard an OPEN container. Its lines become unassigned.

        Args:
            container_id: Container to remove
            confirm: Must be True when the container holds lines

        Raises:
            ContainerNotOpenError: If the container is completed or labeled
            ContainerRemovalNotConfirmedError: If non-empty and not confirmed
        """
        container = self.require_open(container_id)

        if container.lines and not confirm:
            raise ContainerRemovalNotConfirmedError(container_id, len(container.lines))

        self._containers.remove(container)
        logger.info(
            "container_removed",
            container_id=container_id,
            released_lines=len(container.lines)
        )
        return container

    # ===================
    # VALIDATION
    # ===================

    def validation_errors(self) -> List[str]:
        """Container-level completion problems, in display order."""
        if not self._containers:
            return ["You must create at least one container"]

        errors = []

        incomplete = [c for c in self._containers if c.is_open]
        if incomplete:
            errors.append(
                f"{len(incomplete)} container(s) not completed. "
                "Complete all containers before finishing."
            )

        empty = [c for c in self._containers if not c.lines]
        if empty:
            errors.append(
                f"{len(empty)} container(s) are empty. "
                "Remove empty containers or assign items to them."
            )

        return errors

    def _check_transition(self, container: Container, new_status: ContainerStatus) -> None:
        if not is_valid_container_transition(container.status, new_status):
            logger.warning(
                "invalid_container_transition",
                container_id=container.id,
                current_status=container.status.value,
                new_status=new_status.value
            )
            raise InvalidContainerTransitionError(
                container.id,
                container.status.value,
                new_status.value
            )

    def _generate_id(self, sequence: int) -> str:
        """{prefix}-BOX{seq:02d}-{last 6 digits of the millisecond clock}"""
        suffix = str(int(self._clock() * 1000))[-6:]
        return f"{self.id_prefix}-BOX{sequence:02d}-{suffix}"
