from .account_service import AccountService
from .aggregator import aggregate, format_percentage, grade_percentage, history, overall_percentage
from .attendance_service import AttendanceService
from .gateway import AuthenticatedGateway
from .qr_scanner import QRScanner
from .session_manager import SessionManager
from .submitter import AttendanceSubmitter, parse_scan_payload
from .token_store import TokenStore
from .transport import RequestSpec, RequestsTransport, Response, Transport

__all__ = [
	"AccountService",
	"AttendanceService",
	"AttendanceSubmitter",
	"AuthenticatedGateway",
	"QRScanner",
	"RequestSpec",
	"RequestsTransport",
	"Response",
	"SessionManager",
	"TokenStore",
	"Transport",
	"aggregate",
	"format_percentage",
	"grade_percentage",
	"history",
	"overall_percentage",
	"parse_scan_payload",
]
