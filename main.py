import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone, date
from typing import List, Optional

from bson import ObjectId
from fastapi import FastAPI, Depends, BackgroundTasks, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from config import ALLOWED_ORIGINS, DEFAULT_STUDENT_PASSWORD, PORT
from database import (
    get_db, init_db, close_db, create_document, get_documents, serialize,
    to_object_id, attach_names, now,
)
from errors import SchoolError, Unauthenticated, ValidationFailure, NotFound
from chatbot import respond
from gateways import process_payment, send_sms
from schemas import (
    AttendanceStatus, Role, CLASS_CODES, check_class_code,
    User, Student, Notice, Payment, Sms, Resource, Event, Portfolio,
)
from security import (
    Claim, STAFF, get_password_hash, verify_password, create_access_token, require,
)
from seed import seed_database

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = init_db()
    try:
        seed_database(db)
    except PyMongoError as e:
        logger.error("Error initializing sample data: %s", e)
    yield
    close_db()


app = FastAPI(title="Mbizo High School API", lifespan=lifespan)

if ALLOWED_ORIGINS:
    logger.info("CORS configured for origins: %s", ALLOWED_ORIGINS)
else:
    logger.info("CORS configured to allow all origins (set ALLOWED_ORIGINS to restrict)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------- Error Handlers -----------------------
@app.exception_handler(SchoolError)
async def school_error_handler(request: Request, exc: SchoolError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _first_error(errors) -> str:
    if not errors:
        return "Invalid request"
    err = errors[0]
    field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    msg = err.get("msg", "Invalid value")
    return f"{field}: {msg}" if field else msg


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": _first_error(exc.errors())})


@app.exception_handler(ValidationError)
async def schema_validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"message": _first_error(exc.errors())})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"message": "Database error"})


# ----------------------- Schemas -----------------------
class ClassCodeMixin(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @field_validator("class_code", check_fields=False)
    @classmethod
    def validate_class_code(cls, v):
        return check_class_code(v)


class RegisterRequest(ClassCodeMixin):
    username: str = Field(min_length=1)
    password: str = Field(min_length=6)
    role: Role
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    student_id: Optional[str] = None
    class_code: Optional[str] = Field(None, alias="class")


class LoginRequest(BaseModel):
    username: str
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class ChildrenIn(BaseModel):
    children: List[str]


class NoticeIn(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class CreateStudent(ClassCodeMixin):
    name: str = Field(min_length=1)
    student_id: str = Field(min_length=1)
    class_code: str = Field(alias="class")
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class UpdateStudent(ClassCodeMixin):
    name: Optional[str] = Field(None, min_length=1)
    class_code: Optional[str] = Field(None, alias="class")
    attendance: Optional[float] = Field(None, ge=0, le=100)
    performance: Optional[float] = Field(None, ge=0, le=100)


class AttendanceIn(BaseModel):
    status: AttendanceStatus


class PaymentIn(BaseModel):
    student_name: str = Field(min_length=1)
    student_id: str = Field(min_length=1)
    payment_type: str = Field(min_length=1)
    amount: float = Field(gt=0)
    phone: str = Field(min_length=1)


class SmsIn(BaseModel):
    recipient: str = Field(min_length=1)
    type: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ResourceIn(BaseModel):
    title: str = Field(min_length=1)
    type: str = Field(min_length=1)
    category: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    year: int
    file_url: Optional[str] = None


class EventIn(BaseModel):
    title: str = Field(min_length=1)
    date: date
    type: str = Field(min_length=1)
    description: Optional[str] = None


class PortfolioIn(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    file_url: Optional[str] = None


class ChatIn(BaseModel):
    message: str = ""


class ContactIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    message: str = Field(min_length=1)


def public_user(doc: dict) -> dict:
    doc = serialize(doc) if "_id" in doc else doc
    doc.pop("password_hash", None)
    return doc


def find_or_404(db, collection: str, record_id: str, what: str) -> dict:
    doc = db[collection].find_one({"_id": to_object_id(record_id, what)})
    if not doc:
        raise NotFound(f"{what} not found")
    return doc


# ----------------------- Health -----------------------
@app.get("/")
def read_root():
    return {"message": "Mbizo High School API running"}


@app.get("/health")
def health():
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    db = database.db
    if db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = getattr(db, "name", "unknown")
        response["connection_status"] = "Connected"
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
        except PyMongoError as e:
            response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    response["database_url"] = "✅ Set" if (os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL")) else "❌ Not Set"
    return response


@app.get("/schema")
def get_schema():
    models = {"user": User, "student": Student, "notice": Notice, "payment": Payment,
              "sms": Sms, "resource": Resource, "event": Event, "portfolio": Portfolio}
    return {name: model.model_json_schema() for name, model in models.items()}


# ----------------------- Auth Endpoints -----------------------
@app.post("/api/auth/register", status_code=201)
def register(req: RegisterRequest, db=Depends(get_db)):
    if req.role == "student" and not req.class_code:
        raise ValidationFailure("Class is required for student accounts")
    if db["user"].find_one({"username": req.username}):
        raise ValidationFailure("Username already exists")

    user = User(
        username=req.username,
        password_hash=get_password_hash(req.password),
        role=req.role,
        name=req.name,
        email=req.email,
        phone=req.phone,
        student_id=req.student_id,
        class_code=req.class_code,
    )
    try:
        doc = create_document(db, "user", user.model_dump())
    except DuplicateKeyError:
        raise ValidationFailure("Username already exists")

    if req.role == "student":
        student = Student(user=doc["id"], name=req.name, class_code=req.class_code)
        create_document(db, "student", student.model_dump())

    return {"message": "User created successfully", "id": doc["id"]}


@app.post("/api/auth/login")
def login(payload: LoginRequest, db=Depends(get_db)):
    user = db["user"].find_one({"username": payload.username})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise Unauthenticated("Invalid credentials")
    token = create_access_token({"id": str(user["_id"]), "username": user["username"], "role": user["role"]})
    return {
        "token": token,
        "user": {
            "id": str(user["_id"]),
            "username": user["username"],
            "role": user["role"],
            "name": user.get("name"),
            "email": user.get("email"),
        },
    }


@app.get("/api/auth/me")
def read_profile(current: Claim = Depends(require("profile.read")), db=Depends(get_db)):
    return public_user(find_or_404(db, "user", current.id, "User"))


@app.put("/api/auth/me")
def update_profile(payload: ProfileUpdate, current: Claim = Depends(require("profile.update")), db=Depends(get_db)):
    find_or_404(db, "user", current.id, "User")
    data = payload.model_dump(exclude_none=True)
    data["updated_at"] = now()
    user = db["user"].find_one_and_update(
        {"_id": to_object_id(current.id)}, {"$set": data}, return_document=ReturnDocument.AFTER
    )
    return public_user(user)


# ----------------------- Users -----------------------
@app.get("/api/users")
def list_users(role: Optional[str] = None, current: Claim = Depends(require("users.list")), db=Depends(get_db)):
    query = {"role": role} if role else {}
    return [public_user(u) for u in get_documents(db, "user", query, sort=[("_id", 1)])]


@app.get("/api/users/{user_id}")
def get_user(user_id: str, current: Claim = Depends(require("users.read")), db=Depends(get_db)):
    return public_user(find_or_404(db, "user", user_id, "User"))


@app.put("/api/users/{user_id}/children")
def link_children(user_id: str, payload: ChildrenIn, current: Claim = Depends(require("users.children")),
                  db=Depends(get_db)):
    parent = find_or_404(db, "user", user_id, "User")
    if parent.get("role") != "parent":
        raise ValidationFailure("Children can only be linked to parent accounts")
    for child_id in payload.children:
        if not ObjectId.is_valid(child_id):
            raise ValidationFailure(f"Child {child_id} is not a student account")
        child = db["user"].find_one({"_id": ObjectId(child_id)})
        if not child or child.get("role") != "student":
            raise ValidationFailure(f"Child {child_id} is not a student account")
    user = db["user"].find_one_and_update(
        {"_id": parent["_id"]},
        {"$set": {"children": list(dict.fromkeys(payload.children)), "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    return public_user(user)


@app.delete("/api/users/{user_id}")
def delete_user(user_id: str, current: Claim = Depends(require("users.delete")), db=Depends(get_db)):
    user = find_or_404(db, "user", user_id, "User")
    db["student"].delete_many({"user": user_id})
    db["user"].update_many({"children": user_id}, {"$pull": {"children": user_id}})
    res = db["user"].delete_one({"_id": user["_id"]})
    if res.deleted_count == 0:
        raise NotFound("User not found")
    return {"message": "User deleted successfully"}


# ----------------------- Notices -----------------------
@app.get("/api/notices")
def list_notices(db=Depends(get_db)):
    notices = get_documents(db, "notice", sort=[("timestamp", -1)])
    return attach_names(db, notices, "author", "author_name")


@app.post("/api/notices", status_code=201)
def create_notice(payload: NoticeIn, current: Claim = Depends(require("notices.create")), db=Depends(get_db)):
    notice = Notice(title=payload.title, content=payload.content, author=current.id, timestamp=now())
    return create_document(db, "notice", notice.model_dump())


# ----------------------- Student Endpoints -----------------------
@app.get("/api/students")
def list_students(current: Claim = Depends(require("students.list")), db=Depends(get_db)):
    students = get_documents(db, "student", sort=[("_id", -1)])
    return attach_names(db, students, "user", "user_name")


@app.get("/api/students/{key}")
def students_by_class_or_id(key: str, current: Claim = Depends(require("students.read")), db=Depends(get_db)):
    """A class code lists that class in insertion order; anything else is a student id."""
    if key.lower() in CLASS_CODES:
        students = get_documents(db, "student", {"class_code": key.lower()}, sort=[("_id", 1)])
        return attach_names(db, students, "user", "user_name")
    return serialize(find_or_404(db, "student", key, "Student"))


@app.post("/api/students", status_code=201)
def create_student(payload: CreateStudent, current: Claim = Depends(require("students.create")),
                   db=Depends(get_db)):
    if db["student"].find_one({"name": payload.name, "class_code": payload.class_code}):
        raise ValidationFailure("Student already exists with this name in this class")
    username = payload.student_id.lower()
    if db["user"].find_one({"username": username}):
        raise ValidationFailure("Student already exists with this ID")

    user = User(
        username=username,
        password_hash=get_password_hash(DEFAULT_STUDENT_PASSWORD),
        role="student",
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        student_id=payload.student_id,
        class_code=payload.class_code,
    )
    try:
        user_doc = create_document(db, "user", user.model_dump())
    except DuplicateKeyError:
        raise ValidationFailure("Student already exists with this ID")

    student = Student(user=user_doc["id"], name=payload.name, class_code=payload.class_code,
                      attendance=100, performance=75, status="present")
    doc = create_document(db, "student", student.model_dump())
    doc["user_name"] = user_doc["name"]
    return doc


@app.put("/api/students/{student_id}/attendance")
def mark_attendance(student_id: str, payload: AttendanceIn, current: Claim = Depends(require("students.attendance")),
                    db=Depends(get_db)):
    doc = db["student"].find_one_and_update(
        {"_id": to_object_id(student_id, "Student")},
        {"$set": {"status": payload.status}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Student not found")
    return serialize(doc)


@app.put("/api/students/{student_id}")
def update_student(student_id: str, payload: UpdateStudent, current: Claim = Depends(require("students.update")),
                   db=Depends(get_db)):
    existing = find_or_404(db, "student", student_id, "Student")
    data = payload.model_dump(exclude_none=True)
    data["updated_at"] = now()
    doc = db["student"].find_one_and_update(
        {"_id": existing["_id"]}, {"$set": data}, return_document=ReturnDocument.AFTER
    )

    linked = {k: data[k] for k in ("name", "class_code") if k in data}
    if existing.get("user") and linked:
        linked["updated_at"] = data["updated_at"]
        db["user"].update_one({"_id": to_object_id(existing["user"], "User")}, {"$set": linked})
    return serialize(doc)


@app.delete("/api/students/{student_id}")
def delete_student(student_id: str, current: Claim = Depends(require("students.delete")), db=Depends(get_db)):
    student = find_or_404(db, "student", student_id, "Student")
    if student.get("user"):
        db["user"].delete_one({"_id": to_object_id(student["user"], "User")})
    res = db["student"].delete_one({"_id": student["_id"]})
    if res.deleted_count == 0:
        raise NotFound("Student not found")
    return {"message": "Student deleted successfully"}


# ----------------------- Payments -----------------------
def complete_payment(db, payment: dict) -> None:
    """Hand a pending payment to the gateway and record the outcome.

    A declined payment stays pending; only a successful one moves on.
    """
    try:
        result = process_payment(payment)
    except Exception as e:
        logger.error("Payment gateway error for %s: %s", payment["id"], e)
        return
    if not result.success:
        logger.warning("Payment %s was not completed; leaving it pending", payment["id"])
        return
    db["payment"].update_one(
        {"_id": to_object_id(payment["id"]), "status": "pending"},
        {"$set": {"status": "completed", "transaction_id": result.transaction_id, "updated_at": now()}},
    )


@app.post("/api/payments", status_code=201)
def create_payment(payload: PaymentIn, background_tasks: BackgroundTasks,
                   current: Claim = Depends(require("payments.create")), db=Depends(get_db)):
    payment = Payment(student=current.id, timestamp=now(), **payload.model_dump())
    doc = create_document(db, "payment", payment.model_dump())
    background_tasks.add_task(complete_payment, db, dict(doc))
    return doc


@app.get("/api/payments")
def list_payments(current: Claim = Depends(require("payments.list")), db=Depends(get_db)):
    if current.role in STAFF:
        payments = get_documents(db, "payment", sort=[("timestamp", -1)])
        return attach_names(db, payments, "student", "payer_name")
    return get_documents(db, "payment", {"student": current.id}, sort=[("timestamp", -1)])


# ----------------------- SMS -----------------------
@app.post("/api/sms", status_code=201)
def create_sms(payload: SmsIn, current: Claim = Depends(require("sms.create")), db=Depends(get_db)):
    sms = Sms(recipient=payload.recipient, type=payload.type, message=payload.message, timestamp=now())
    doc = create_document(db, "sms", sms.model_dump())
    try:
        send_sms(doc)
    except Exception as e:
        logger.error("SMS delivery to %s failed: %s", doc["recipient"], e)
        db["sms"].update_one({"_id": to_object_id(doc["id"])}, {"$set": {"status": "failed"}})
        doc["status"] = "failed"
    return doc


@app.get("/api/sms")
def list_sms(current: Claim = Depends(require("sms.list")), db=Depends(get_db)):
    return get_documents(db, "sms", sort=[("timestamp", -1)], limit=50)


# ----------------------- Resources -----------------------
@app.get("/api/resources")
def list_resources(category: Optional[str] = None, db=Depends(get_db)):
    query = {}
    if category and category != "all":
        if category == "papers":
            query["type"] = "Past Paper"
        elif category == "notes":
            query["type"] = "Study Notes"
        else:
            query["category"] = category
    resources = get_documents(db, "resource", query, sort=[("timestamp", -1)])
    return attach_names(db, resources, "uploaded_by", "uploaded_by_name")


@app.post("/api/resources", status_code=201)
def create_resource(payload: ResourceIn, current: Claim = Depends(require("resources.create")),
                    db=Depends(get_db)):
    resource = Resource(uploaded_by=current.id, timestamp=now(), **payload.model_dump())
    return create_document(db, "resource", resource.model_dump())


# ----------------------- Events -----------------------
@app.get("/api/events")
def list_events(db=Depends(get_db)):
    events = get_documents(db, "event", sort=[("date", 1)])
    return attach_names(db, events, "created_by", "created_by_name")


@app.post("/api/events", status_code=201)
def create_event(payload: EventIn, current: Claim = Depends(require("events.create")), db=Depends(get_db)):
    event = Event(
        title=payload.title,
        date=payload.date.isoformat(),
        type=payload.type,
        description=payload.description,
        created_by=current.id,
        timestamp=now(),
    )
    return create_document(db, "event", event.model_dump())


# ----------------------- Portfolios -----------------------
@app.get("/api/portfolios")
def list_portfolios(category: Optional[str] = None, db=Depends(get_db)):
    query = {"author_type": category} if category and category != "all" else {}
    portfolios = get_documents(db, "portfolio", query, sort=[("timestamp", -1)])
    return attach_names(db, portfolios, "author", "author_name")


@app.post("/api/portfolios", status_code=201)
def create_portfolio(payload: PortfolioIn, current: Claim = Depends(require("portfolios.create")),
                     db=Depends(get_db)):
    portfolio = Portfolio(
        author=current.id,
        author_type="student" if current.role == "student" else "teacher",
        timestamp=now(),
        **payload.model_dump(),
    )
    return create_document(db, "portfolio", portfolio.model_dump())


# ----------------------- Chat & Contact -----------------------
@app.post("/api/chat")
def chat(payload: ChatIn):
    return {"response": respond(payload.message)}


@app.post("/api/contact")
def contact(payload: ContactIn):
    logger.info("Contact form submission from %s <%s>: %s", payload.name, payload.email, payload.message)
    return {"message": "Message sent successfully!"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
