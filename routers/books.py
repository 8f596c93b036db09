import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status
from fastapi.responses import JSONResponse
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models, schemas
from database import get_db

router = APIRouter(prefix="/books", tags=["Books"])
logger = logging.getLogger(__name__)

NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse}}


def valid_book_id(id: str = Path(pattern=schemas.BOOK_ID_PATTERN)) -> int:
    book_id = schemas.parse_book_id(id)
    # No stored row can carry an id past the column range
    if book_id > schemas.MAX_BOOK_ID:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book_id


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Book not found"})


def _store_failure(db: Session, message: str) -> JSONResponse:
    db.rollback()
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message},
    )


# List Books
@router.get("", response_model=schemas.BookList)
def list_books(db: Session = Depends(get_db)):
    try:
        books = (
            db.query(models.Book)
            .order_by(models.Book.created_at.asc(), models.Book.id.asc())
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Error fetching books")
        return _store_failure(db, "Failed to fetch books")

    logger.debug("Found %d books", len(books))
    return schemas.BookList(books=[schemas.BookOut.model_validate(book) for book in books])


# Get Book
@router.get("/{id}", response_model=schemas.BookEnvelope, responses=NOT_FOUND)
def get_book(book_id: int = Depends(valid_book_id), db: Session = Depends(get_db)):
    try:
        db_book = db.query(models.Book).filter(models.Book.id == book_id).first()
    except SQLAlchemyError:
        logger.exception("Error fetching book %s", book_id)
        return _store_failure(db, "Failed to fetch book")

    if not db_book:
        return _not_found()
    return schemas.BookEnvelope(book=schemas.BookOut.model_validate(db_book))


# Add Book
@router.post("", response_model=schemas.BookEnvelope, status_code=status.HTTP_201_CREATED)
def create_book(book: schemas.BookCreate, db: Session = Depends(get_db)):
    now = models.utcnow()
    new_book = models.Book(**book.model_dump(), created_at=now, updated_at=now)

    try:
        db.add(new_book)
        db.commit()
        db.refresh(new_book)
    except SQLAlchemyError:
        logger.exception("Error creating book")
        return _store_failure(db, "Failed to create book")

    logger.info("Created book %s", new_book.id)
    return schemas.BookEnvelope(book=schemas.BookOut.model_validate(new_book))


# Update Book (partial)
@router.put("/{id}", response_model=schemas.BookEnvelope, responses=NOT_FOUND)
def update_book(
    book: schemas.BookUpdate,
    book_id: int = Depends(valid_book_id),
    db: Session = Depends(get_db),
):
    values = book.model_dump(exclude_unset=True)
    values["updated_at"] = models.utcnow()

    try:
        db_book = db.execute(
            update(models.Book)
            .where(models.Book.id == book_id)
            .values(**values)
            .returning(models.Book)
        ).scalar_one_or_none()
        if not db_book:
            return _not_found()

        payload = schemas.BookEnvelope(book=schemas.BookOut.model_validate(db_book))
        db.commit()
    except SQLAlchemyError:
        logger.exception("Error updating book %s", book_id)
        return _store_failure(db, "Failed to update book")

    logger.info("Updated book %s fields=%s", book_id, sorted(values))
    return payload


# Delete Book
@router.delete("/{id}", response_model=schemas.MessageResponse, responses=NOT_FOUND)
def delete_book(book_id: int = Depends(valid_book_id), db: Session = Depends(get_db)):
    try:
        deleted_id = db.execute(
            delete(models.Book).where(models.Book.id == book_id).returning(models.Book.id)
        ).scalar_one_or_none()
        if deleted_id is None:
            return _not_found()
        db.commit()
    except SQLAlchemyError:
        logger.exception("Error deleting book %s", book_id)
        return _store_failure(db, "Failed to delete book")

    logger.info("Deleted book %s", book_id)
    return schemas.MessageResponse(message="Book deleted successfully")
