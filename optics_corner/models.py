# optics_corner/models.py
import logging
from decimal import Decimal

from django.conf import settings
from django.db import models, transaction as db_transaction
from django.db.models import F, Q

from accounts.models import Account
from core.utils import get_local_today
from medicine_corner.models import allocate_shares
from .exceptions import InsufficientOpticsStockError, OpticsStockError

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


class StockItemQuerySet(models.QuerySet):
    search_fields = ()

    def active(self):
        return self.filter(is_active=True)

    def search(self, term):
        term = (term or '').strip()
        if not term:
            return self
        query = Q()
        for field in self.search_fields:
            query |= Q(**{f'{field}__icontains': term})
        return self.filter(query)


class FrameQuerySet(StockItemQuerySet):
    search_fields = ('sku', 'brand', 'model', 'color')


class LensTypeQuerySet(StockItemQuerySet):
    search_fields = ('name', 'material', 'coating')


class StockItem(models.Model):
    """Fields shared by frames and lenses"""
    purchase_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    selling_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    stock_quantity = models.IntegerField(default=0)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    @property
    def cost_value(self):
        return self.stock_quantity * self.purchase_price

    @property
    def retail_value(self):
        return self.stock_quantity * self.selling_price

    def is_low_stock(self, threshold):
        return self.stock_quantity <= threshold


class Frame(StockItem):
    FRAME_TYPE_CHOICES = [
        ('full_rim', 'Full Rim'),
        ('half_rim', 'Half Rim'),
        ('rimless', 'Rimless'),
    ]
    ITEM_TYPE = 'frame'

    sku = models.CharField(max_length=50, unique=True)
    brand = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    frame_type = models.CharField(max_length=20, choices=FRAME_TYPE_CHOICES, default='full_rim')
    material = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=50, blank=True)
    size = models.CharField(max_length=20, blank=True)

    objects = FrameQuerySet.as_manager()

    class Meta:
        ordering = ['brand', 'model']

    def __str__(self):
        return f"{self.brand} {self.model} ({self.sku})"

    @property
    def display_name(self):
        return f"{self.brand} {self.model}"


class LensType(StockItem):
    TYPE_CHOICES = [
        ('single_vision', 'Single Vision'),
        ('bifocal', 'Bifocal'),
        ('progressive', 'Progressive'),
        ('photochromic', 'Photochromic'),
    ]
    ITEM_TYPE = 'lens'

    name = models.CharField(max_length=100)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='single_vision')
    material = models.CharField(max_length=50, blank=True)
    coating = models.CharField(max_length=50, blank=True)

    objects = LensTypeQuerySet.as_manager()

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def display_name(self):
        return self.name


ITEM_TYPE_CHOICES = [
    (Frame.ITEM_TYPE, 'Frame'),
    (LensType.ITEM_TYPE, 'Lens'),
]


class OpticsPurchase(models.Model):
    purchase_no = models.CharField(max_length=30, unique=True)
    item_type = models.CharField(max_length=10, choices=ITEM_TYPE_CHOICES)
    frame = models.ForeignKey(Frame, on_delete=models.PROTECT, null=True, blank=True, related_name='purchases')
    lens = models.ForeignKey(LensType, on_delete=models.PROTECT, null=True, blank=True, related_name='purchases')
    quantity = models.PositiveIntegerField()
    unit_cost = models.DecimalField(max_digits=10, decimal_places=2)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2)
    purchase_date = models.DateField()
    notes = models.TextField(blank=True)
    added_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='optics_purchases'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-purchase_date', '-created_at']

    def __str__(self):
        return f"{self.purchase_no} - {self.item}"

    @property
    def item(self):
        return self.frame if self.item_type == Frame.ITEM_TYPE else self.lens

    @classmethod
    def record(cls, item, quantity, unit_cost, purchase_date=None, user=None, notes='', pay_from_account=False):
        """Receive stock of a frame or lens, optionally paying from the optics account"""
        if quantity <= 0:
            raise OpticsStockError('Quantity must be greater than zero.')
        unit_cost = Decimal(str(unit_cost))
        purchase_date = purchase_date or get_local_today()

        with db_transaction.atomic():
            purchase = cls.objects.create(
                purchase_no=_next_number(cls, 'purchase_no', 'OPP', purchase_date),
                item_type=item.ITEM_TYPE,
                frame=item if isinstance(item, Frame) else None,
                lens=item if isinstance(item, LensType) else None,
                quantity=quantity,
                unit_cost=unit_cost,
                total_cost=unit_cost * quantity,
                purchase_date=purchase_date,
                notes=notes,
                added_by=user,
            )
            type(item).objects.filter(pk=item.pk).update(
                stock_quantity=F('stock_quantity') + quantity,
                purchase_price=unit_cost,
            )
            if pay_from_account:
                Account.for_kind(Account.OPTICS).add_expense(
                    purchase.total_cost,
                    'Optics Purchase',
                    f'{item.display_name} x {quantity}',
                    date=purchase_date,
                    user=user,
                    reference_type='optics_purchase',
                    reference_id=purchase.pk,
                )
        logger.info("Optics purchase %s: %s x %s", purchase.purchase_no, item.display_name, quantity)
        return purchase


def _next_number(model, field, prefix, on_date):
    prefix = f'{prefix}-{on_date:%Y%m%d}-'
    last = (
        model.objects.filter(**{f'{field}__startswith': prefix})
        .order_by(f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    sequence = int(last.rsplit('-', 1)[1]) + 1 if last else 1
    return f'{prefix}{sequence:04d}'


class OpticsSaleQuerySet(models.QuerySet):

    def between(self, start, end):
        return self.filter(sale_date__gte=start, sale_date__lte=end)

    def only_fitting(self):
        """Sales that charge only for fitting, with no frame or lens sold"""
        return self.filter(items__isnull=True, glass_fitting_price__gt=0)


class OpticsSale(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('ready', 'Ready'),
        ('delivered', 'Delivered'),
    ]

    invoice_number = models.CharField(max_length=30, unique=True)
    customer_name = models.CharField(max_length=200, blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    sale_date = models.DateField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    glass_fitting_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    advance_payment = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    due_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    notes = models.TextField(blank=True)
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='optics_sales'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = OpticsSaleQuerySet.as_manager()

    class Meta:
        ordering = ['-sale_date', '-created_at']

    def __str__(self):
        return f"{self.invoice_number} - {self.total_amount}"

    @classmethod
    def record(cls, lines, discount=ZERO, fitting_charge=ZERO, advance_payment=None,
               sale_date=None, user=None, **details):
        """
        Sell ``lines`` of (frame or lens, quantity, unit_price or None). A sale
        with no lines and a fitting charge is an only-fitting-charge sale.
        The advance is posted as Optics Sale income on the optics account.
        """
        fitting_charge = Decimal(str(fitting_charge or 0))
        if not lines and fitting_charge <= 0:
            raise OpticsStockError('A sale needs an item or a fitting charge.')

        sale_date = sale_date or get_local_today()
        with db_transaction.atomic():
            sale = cls.objects.create(
                invoice_number=_next_number(cls, 'invoice_number', 'OPT', sale_date),
                sale_date=sale_date,
                glass_fitting_price=fitting_charge,
                seller=user,
                **details
            )

            items = []
            for item, quantity, unit_price in lines:
                locked = type(item).objects.select_for_update().get(pk=item.pk)
                if quantity <= 0 or quantity > locked.stock_quantity:
                    raise InsufficientOpticsStockError(locked, quantity)
                unit_price = Decimal(str(unit_price)) if unit_price is not None else locked.selling_price
                items.append(OpticsSaleItem(
                    sale=sale,
                    item_type=locked.ITEM_TYPE,
                    frame=locked if isinstance(locked, Frame) else None,
                    lens=locked if isinstance(locked, LensType) else None,
                    item_name=locked.display_name,
                    quantity=quantity,
                    unit_price=unit_price,
                    unit_cost=locked.purchase_price,
                    total_price=unit_price * quantity,
                ))
                type(locked).objects.filter(pk=locked.pk).update(
                    stock_quantity=F('stock_quantity') - quantity
                )

            subtotal = sum((item.total_price for item in items), ZERO)
            discount = min(Decimal(str(discount or 0)), subtotal)
            total = subtotal - discount + fitting_charge
            paid = total if advance_payment is None else min(Decimal(str(advance_payment)), total)
            due = total - paid

            allocate_shares(items, subtotal, discount, 'discount_share')
            allocate_shares(items, subtotal, fitting_charge, 'fitting_share')
            allocate_shares(
                items, total, due, 'due_share',
                weight=lambda item: item.total_price - item.discount_share + item.fitting_share
            )
            OpticsSaleItem.objects.bulk_create(items)

            sale.subtotal = subtotal
            sale.discount = discount
            sale.total_amount = total
            sale.advance_payment = paid
            sale.due_amount = due
            sale.save(update_fields=['subtotal', 'discount', 'total_amount', 'advance_payment', 'due_amount'])

            if paid > 0:
                Account.for_kind(Account.OPTICS).add_income(
                    paid,
                    'Optics Sale' if items else 'Fitting Charge',
                    f'Invoice {sale.invoice_number}',
                    date=sale_date,
                    user=user,
                    reference_type='optics_sale',
                    reference_id=sale.pk,
                )

        logger.info("Optics sale %s recorded: total %s, due %s", sale.invoice_number, total, due)
        return sale


class OpticsSaleItem(models.Model):
    sale = models.ForeignKey(OpticsSale, on_delete=models.CASCADE, related_name='items')
    item_type = models.CharField(max_length=10, choices=ITEM_TYPE_CHOICES)
    frame = models.ForeignKey(Frame, on_delete=models.PROTECT, null=True, blank=True, related_name='sale_items')
    lens = models.ForeignKey(LensType, on_delete=models.PROTECT, null=True, blank=True, related_name='sale_items')
    item_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    unit_cost = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount_share = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    fitting_share = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    due_share = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    def __str__(self):
        return f"{self.item_name} x {self.quantity}"
