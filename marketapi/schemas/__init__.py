from .auth import AuthResponse, LoginRequest, SignupRequest, TokenData
from .user import User
from .points import PointTransactionEntry, PointsLedgerResponse
from .worksheet import Worksheet, WorksheetListResponse
from .purchase import CartResponse, CheckoutResponse, FeedbackResponse
from .event import Event, ParticipationResponse, QuizSubmitResponse
