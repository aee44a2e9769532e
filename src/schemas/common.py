"""
Common Pydantic schemas for API request/response handling.

This module provides:
- The uniform success envelope {success, message, data}
- Pagination parameters and the paginated envelope
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

# Type variable for generic responses
DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """
    Uniform success envelope.

    Attributes:
        success: Always True for successful responses
        message: Human-readable outcome
        data: Response payload

    Example:
        >>> ApiResponse[UserResponse](message="User created", data=user_response)
    """

    success: bool = Field(default=True, description="Whether the request succeeded")
    message: str = Field(default="OK", description="Human-readable outcome")
    data: DataT | None = Field(default=None, description="Response payload")


class PaginationParams(BaseModel):
    """
    Query parameters for paginated list endpoints.

    Attributes:
        page: Page number (1-indexed)
        page_size: Number of items per page (max 100)
    """

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Number of items per page (max 100)",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "page": 1,
                "page_size": 20,
            }
        }
    )

    @property
    def offset(self) -> int:
        """
        Calculate SQL OFFSET from page number.

        Example:
            >>> PaginationParams(page=2, page_size=20).offset
            20
        """
        return (self.page - 1) * self.page_size

    @staticmethod
    def calculate_total_pages(total: int, page_size: int) -> int:
        """
        Calculate total pages from total count.

        Example:
            >>> PaginationParams.calculate_total_pages(95, 20)
            5
            >>> PaginationParams.calculate_total_pages(0, 20)
            0
        """
        return (total + page_size - 1) // page_size if total > 0 else 0


class PaginationMeta(BaseModel):
    """
    Metadata for paginated responses.

    Attributes:
        total: Total number of items across all pages
        page: Current page number
        page_size: Number of items per page
        total_pages: Total number of pages
    """

    total: int = Field(description="Total number of items")
    page: int = Field(description="Current page number")
    page_size: int = Field(description="Number of items per page")
    total_pages: int = Field(description="Total number of pages")

    @classmethod
    def build(cls, total: int, pagination: PaginationParams) -> "PaginationMeta":
        """Build metadata from a total count and the request's pagination."""
        return cls(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=PaginationParams.calculate_total_pages(total, pagination.page_size),
        )


class PaginatedResponse(BaseModel, Generic[DataT]):
    """
    Paginated success envelope.

    Attributes:
        success: Always True
        message: Human-readable outcome
        data: List of items for current page
        meta: Pagination metadata
    """

    success: bool = True
    message: str = "OK"
    data: list[DataT]
    meta: PaginationMeta
