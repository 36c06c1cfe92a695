"""
Error taxonomy and batch warnings.
"""

import dataclasses


class LabelSheetError(Exception):
	"""
	Base class for failures that stop a label sheet run.
	"""


class InvalidTemplate(LabelSheetError):
	"""
	The sheet template violates a geometric or content invariant.
	"""

	def __init__(self, problems: list[str]) -> None:
		self.problems = list(problems)
		super().__init__("Invalid sheet template: " + "; ".join(self.problems))


class InvalidSelector(LabelSheetError):
	pass


class AssetNotFound(LabelSheetError):

	def __init__(self, asset_id: str, detail: str = "") -> None:
		self.asset_id = asset_id
		message = f"Asset not found: {asset_id}"
		if detail:
			message += f" ({detail})"
		super().__init__(message)


class ResolverUnavailable(LabelSheetError):
	pass


class PayloadTooLarge(LabelSheetError):

	def __init__(self, payload: str, level: str, max_version: int) -> None:
		self.payload = payload
		self.level = level
		self.max_version = max_version
		super().__init__(
			f"Payload of {len(payload)} characters does not fit a QR code "
			f"of version <= {max_version} at level {level}"
		)


class LayoutCancelled(LabelSheetError):
	pass


class RenderError(LabelSheetError):
	pass


@dataclasses.dataclass(frozen=True)
class LabelWarning:
	"""
	A non-fatal problem collected during a batch run.

	kind is one of: asset_not_found, payload_too_large, field_overflow.
	asset_id is empty for problems that apply to every label.
	"""
	kind: str
	asset_id: str
	message: str

	def __str__(self) -> str:
		if self.asset_id:
			return f"[{self.kind}] {self.asset_id}: {self.message}"
		return f"[{self.kind}] {self.message}"
