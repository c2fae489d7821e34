from . import crud_calendar_event
from . import crud_calendar_account
from . import crud_order
