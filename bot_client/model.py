"""In-memory projection of bot state folded from stream messages."""

from __future__ import annotations

from dataclasses import dataclass, field

from .protocol import CommandKind, Message, MessageKind


@dataclass
class CameraState:
    """Latest camera command per sub-kind."""

    object_detection: Message | None = None
    region_tracking: Message | None = None
    outputs: Message | None = None


@dataclass
class BotModel:
    """Latest known message per category.

    Writes are last-write-wins by arrival order; message timestamps are never
    compared. ``winches`` is indexed by winch id with unseen ids left as None,
    ``gimbal_values`` maps gimbal index to target to message.
    """

    flyer: Message | None = None
    winches: list[Message | None] = field(default_factory=list)
    gimbal_values: dict[int, dict[int, Message]] = field(default_factory=dict)
    gimbal_status: Message | None = None
    camera: CameraState = field(default_factory=CameraState)
    config: Message | None = None

    def fold(self, message: Message) -> bool:
        """Apply one message to the model.

        Returns:
            True if a category was updated, False if the variant is only
            relayed as an event.
        """
        kind = message.kind
        if kind is MessageKind.WINCH_STATUS:
            winch_id = message.winch_id
            if winch_id < 0:
                return False
            if winch_id >= len(self.winches):
                self.winches.extend([None] * (winch_id + 1 - len(self.winches)))
            self.winches[winch_id] = message
        elif kind is MessageKind.FLYER_SENSORS:
            self.flyer = message
        elif kind is MessageKind.CONFIG_IS_CURRENT:
            self.config = message
        elif kind is MessageKind.GIMBAL_VALUE:
            addr = message.gimbal_address
            self.gimbal_values.setdefault(addr.index, {})[addr.target] = message
        elif kind is MessageKind.GIMBAL_CONTROL_STATUS:
            self.gimbal_status = message
        elif kind is MessageKind.COMMAND:
            return self._fold_command(message)
        else:
            return False
        return True

    def _fold_command(self, message: Message) -> bool:
        command = message.command_kind
        if command is CommandKind.CAMERA_OBJECT_DETECTION:
            self.camera.object_detection = message
        elif command is CommandKind.CAMERA_REGION_TRACKING:
            self.camera.region_tracking = message
        elif command is CommandKind.CAMERA_OUTPUT_STATUS:
            self.camera.outputs = message
        else:
            return False
        return True

    def winch(self, winch_id: int) -> Message | None:
        """Return the last status for a winch, or None if never seen."""
        if 0 <= winch_id < len(self.winches):
            return self.winches[winch_id]
        return None

    def gimbal_value(self, index: int, target: int) -> Message | None:
        return self.gimbal_values.get(index, {}).get(target)
