"""
报名API路由 - FastAPI表现层
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from application.dto import (
    CurrentUserDTO,
    EnrollmentCheckDTO,
    EnrollmentCreateDTO,
    EnrollmentInitiatedDTO,
    EnrollmentResponseDTO,
    PaginationParams,
)
from application.dtos.payments import SimulatedPaymentResult
from application.ports.payment_gateway import PaymentGateway
from application.services.enrollment_service import EnrollmentApplicationService
from application.services.refund_service import RefundProcessor
from application.services.settlement_service import SettlementCallbackHandler
from api.dependencies import (
    get_current_active_user,
    get_enrollment_service,
    get_gateway,
    get_refund_processor,
    get_settlement_handler,
    require_admin,
    require_student,
)
from core.config import settings
from core.response import success_response, paginated_response, Response as ApiResponse, PaginatedData
from domain.common.exceptions import PaymentGatewayDisabledException
from domain.enrollment.entity import EnrollmentStatus


router = APIRouter(
    prefix="/enrollments",
    tags=["报名与支付"]
)


@router.post(
    "",
    summary="发起报名",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[EnrollmentInitiatedDTO],
)
async def initiate_enrollment(
    body: EnrollmentCreateDTO,
    current_user: CurrentUserDTO = Depends(require_student),
    service: EnrollmentApplicationService = Depends(get_enrollment_service),
):
    """
    报名课程

    - 免费课程：直接完成报名
    - 付费课程：返回 `payment.payment_url`，前端跳转到支付网关
    """
    result = await service.initiate(current_user, body.course_id)
    if result.payment is None:
        return success_response(data=result, message="Enrolled successfully")
    return success_response(data=result, message="Payment initiated, redirect to payment_url")


@router.get("/verify", summary="支付网关回调", include_in_schema=True)
async def verify_enrollment(
    authority: Optional[str] = Query(None, alias="Authority"),
    gateway_status: Optional[str] = Query(None, alias="Status"),
    handler: SettlementCallbackHandler = Depends(get_settlement_handler),
):
    """Browser lands here from the gateway; always answered with a 303 to the frontend."""
    outcome = await handler.handle_callback(authority, gateway_status)
    return RedirectResponse(url=outcome.redirect_url, status_code=status.HTTP_303_SEE_OTHER)


@router.get(
    "/mycourses",
    summary="我的报名",
    response_model=ApiResponse[PaginatedData[EnrollmentResponseDTO]],
)
async def list_my_enrollments(
    page: int = Query(1, ge=1, description="页码"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="每页数量"),
    payment_status: Optional[EnrollmentStatus] = Query(None),
    is_completed: Optional[bool] = Query(None),
    current_user: CurrentUserDTO = Depends(get_current_active_user),
    service: EnrollmentApplicationService = Depends(get_enrollment_service),
):
    pagination = PaginationParams(page=page, size=size)
    items, total = await service.list_my_enrollments(
        current_user.id, pagination, status=payment_status, is_completed=is_completed
    )
    return paginated_response(items=items, total=total, page=page, size=size)


@router.get(
    "/course/{course_id}/check",
    summary="检查是否已报名",
    response_model=ApiResponse[EnrollmentCheckDTO],
)
async def check_enrollment(
    course_id: int,
    current_user: CurrentUserDTO = Depends(get_current_active_user),
    service: EnrollmentApplicationService = Depends(get_enrollment_service),
):
    result = await service.check_enrollment(current_user.id, course_id)
    return success_response(data=result)


@router.get(
    "",
    summary="所有报名（管理员）",
    response_model=ApiResponse[PaginatedData[EnrollmentResponseDTO]],
)
async def list_all_enrollments(
    page: int = Query(1, ge=1, description="页码"),
    size: int = Query(settings.ADMIN_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="每页数量"),
    payment_status: Optional[EnrollmentStatus] = Query(None),
    course_id: Optional[int] = Query(None),
    student_id: Optional[int] = Query(None),
    _: CurrentUserDTO = Depends(require_admin),
    service: EnrollmentApplicationService = Depends(get_enrollment_service),
):
    """``extra.total_revenue`` sums every completed enrollment regardless of filters."""
    pagination = PaginationParams(page=page, size=size)
    items, total, revenue = await service.list_all(
        pagination, status=payment_status, course_id=course_id, student_id=student_id
    )
    return paginated_response(
        items=items, total=total, page=page, size=size,
        extra={"total_revenue": str(revenue)},
    )


@router.get(
    "/{enrollment_id}",
    summary="报名详情",
    response_model=ApiResponse[EnrollmentResponseDTO],
)
async def get_enrollment(
    enrollment_id: int,
    current_user: CurrentUserDTO = Depends(get_current_active_user),
    service: EnrollmentApplicationService = Depends(get_enrollment_service),
):
    enrollment = await service.get_enrollment(enrollment_id, current_user)
    return success_response(data=enrollment)


@router.put(
    "/{enrollment_id}/refund",
    summary="退款（管理员）",
    response_model=ApiResponse[EnrollmentResponseDTO],
)
async def refund_enrollment(
    enrollment_id: int,
    _: CurrentUserDTO = Depends(require_admin),
    processor: RefundProcessor = Depends(get_refund_processor),
):
    enrollment = await processor.refund(enrollment_id)
    return success_response(data=enrollment, message="Refund processed")


# 仅非生产环境挂载（见 main.py）
test_payment_router = APIRouter(
    prefix="/enrollments",
    tags=["模拟支付"]
)


@test_payment_router.post(
    "/test-payment/{authority}",
    summary="模拟支付成功（仅开发/测试）",
    response_model=ApiResponse[SimulatedPaymentResult],
)
async def simulate_payment(
    authority: str,
    gateway: PaymentGateway = Depends(get_gateway),
):
    """Marks a simulated payment as paid; call ``verify_url`` afterwards to settle it."""
    result = await _simulate(gateway, authority)
    return success_response(data=result, message="Payment simulated, now call verify_url")


@test_payment_router.get(
    "/test-payment/{authority}",
    summary="模拟网关支付页（浏览器跳转）",
)
async def simulated_payment_page(
    authority: str,
    gateway: PaymentGateway = Depends(get_gateway),
):
    """``payment_url`` of the simulator lands here: pay, then bounce to the verify callback."""
    result = await _simulate(gateway, authority)
    return RedirectResponse(url=result.verify_url, status_code=status.HTTP_303_SEE_OTHER)


async def _simulate(gateway: PaymentGateway, authority: str) -> SimulatedPaymentResult:
    simulate = getattr(gateway, "simulate_success", None)
    if settings.is_production or not callable(simulate):
        raise PaymentGatewayDisabledException(gateway.provider)
    return await simulate(authority)
