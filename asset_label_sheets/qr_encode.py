"""
QR code module matrices for label codes.
"""

# PIP3 modules
import qrcode
import qrcode.constants
import qrcode.exceptions

# local repo modules
import asset_label_sheets as als
import asset_label_sheets.config
import asset_label_sheets.errors
import asset_label_sheets.records


AssetRecord = als.records.AssetRecord
PayloadTooLarge = als.errors.PayloadTooLarge

DEFAULT_CODE_EC_LEVEL = als.config.DEFAULT_CODE_EC_LEVEL
DEFAULT_CODE_MAX_VERSION = als.config.DEFAULT_CODE_MAX_VERSION
CODE_MIN_VERSION = als.config.CODE_MIN_VERSION
CODE_MAX_VERSION = als.config.CODE_MAX_VERSION

EC_LEVELS = {
	"L": qrcode.constants.ERROR_CORRECT_L,
	"M": qrcode.constants.ERROR_CORRECT_M,
	"Q": qrcode.constants.ERROR_CORRECT_Q,
	"H": qrcode.constants.ERROR_CORRECT_H,
}

ModuleMatrix = tuple[tuple[bool, ...], ...]


class QrEncoder:
	"""
	Encode payloads into QR module matrices, without a quiet zone.

	max_version caps the symbol size; payloads that need a larger symbol
	raise PayloadTooLarge.
	"""

	def __init__(self, max_version: int = DEFAULT_CODE_MAX_VERSION) -> None:
		if not CODE_MIN_VERSION <= max_version <= CODE_MAX_VERSION:
			raise ValueError(f"max_version must be between {CODE_MIN_VERSION} and {CODE_MAX_VERSION}")
		self.max_version = max_version

	#============================================
	def encode(self, payload: str, level: str = DEFAULT_CODE_EC_LEVEL) -> ModuleMatrix:
		"""
		Encode a payload at an error-correction level.

		Args:
			payload: Text to encode.
			level: One of L, M, Q, H.

		Returns:
			Square matrix of booleans, True for dark modules.

		Raises:
			PayloadTooLarge: when no symbol up to max_version holds the payload.
		"""
		error_correction = EC_LEVELS.get(level.upper())
		if error_correction is None:
			raise ValueError(f"unknown error correction level {level!r}")
		qr = qrcode.QRCode(version=None, error_correction=error_correction, border=0)
		qr.add_data(payload)
		try:
			qr.make(fit=True)
		# qrcode 8 raises ValueError for symbols past version 40
		except (qrcode.exceptions.DataOverflowError, ValueError) as error:
			raise PayloadTooLarge(payload, level.upper(), self.max_version) from error
		if qr.version > self.max_version:
			raise PayloadTooLarge(payload, level.upper(), self.max_version)
		matrix = qr.get_matrix()
		return tuple(tuple(bool(cell) for cell in row) for row in matrix)


#============================================
def build_code_payload(payload_format: str, record: AssetRecord) -> str:
	"""
	Build the canonical reference string encoded in a label's code.

	Args:
		payload_format: str.format pattern, e.g. "https://hb.example/a/{asset_id}".
		record: Asset record.

	Returns:
		Payload string.
	"""
	return payload_format.format(
		asset_id=record.asset_id,
		name=record.name,
		location=record.location or "",
	)


#============================================
def symbol_size(version: int) -> int:
	"""
	Module count per side for a QR version.
	"""
	return 17 + 4 * version
