# medicine_corner/models.py
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import models, transaction as db_transaction
from django.db.models import F, Q, Sum

from accounts.models import Account
from core.utils import get_local_today
from .exceptions import InsufficientStockError, StockError

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


class MedicineQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def tracked(self):
        return self.filter(track_stock=True)

    def search(self, term):
        term = (term or '').strip()
        if not term:
            return self
        return self.filter(
            Q(name__icontains=term) |
            Q(generic_name__icontains=term) |
            Q(manufacturer__icontains=term)
        )


class Medicine(models.Model):
    TYPE_CHOICES = [
        ('tablet', 'Tablet'),
        ('capsule', 'Capsule'),
        ('drop', 'Eye Drop'),
        ('ointment', 'Ointment'),
        ('syrup', 'Syrup'),
        ('injection', 'Injection'),
        ('other', 'Other'),
    ]

    name = models.CharField(max_length=200)
    generic_name = models.CharField(max_length=200, blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='tablet')
    manufacturer = models.CharField(max_length=200, blank=True)
    unit = models.CharField(max_length=20, default='pcs')
    description = models.TextField(blank=True)
    standard_sale_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    track_stock = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MedicineQuerySet.as_manager()

    class Meta:
        ordering = ['name']

    def __str__(self):
        if self.generic_name:
            return f"{self.name} ({self.generic_name})"
        return self.name

    @property
    def total_stock(self):
        return self.stocks.filter(is_active=True).aggregate(
            total=Sum('available_quantity')
        )['total'] or 0

    def add_stock(self, quantity, buy_price, sale_price=None, batch_number='', expiry_date=None,
                  purchase_date=None, user=None, pay_from_account=False):
        """
        Receive a batch. With ``pay_from_account`` the purchase is posted as a
        Medicine Purchase expense on the medicine account.
        """
        if quantity <= 0:
            raise StockError('Quantity must be greater than zero.')
        buy_price = Decimal(str(buy_price))
        with db_transaction.atomic():
            stock = MedicineStock.objects.create(
                medicine=self,
                batch_number=batch_number,
                expiry_date=expiry_date,
                quantity=quantity,
                available_quantity=quantity,
                buy_price=buy_price,
                sale_price=Decimal(str(sale_price)) if sale_price is not None else self.standard_sale_price,
                purchase_date=purchase_date or get_local_today(),
                added_by=user,
            )
            if pay_from_account:
                Account.for_kind(Account.MEDICINE).add_expense(
                    stock.total_cost,
                    'Medicine Purchase',
                    f'{self.name} x {quantity} (batch {batch_number or "-"})',
                    date=stock.purchase_date,
                    user=user,
                    reference_type='medicine_stock',
                    reference_id=stock.pk,
                )
        logger.info("Stock received for %s: %s @ %s", self.name, quantity, buy_price)
        return stock


class MedicineStock(models.Model):
    medicine = models.ForeignKey(Medicine, on_delete=models.CASCADE, related_name='stocks')
    batch_number = models.CharField(max_length=50, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    quantity = models.PositiveIntegerField()
    available_quantity = models.PositiveIntegerField()
    buy_price = models.DecimalField(max_digits=10, decimal_places=2)
    sale_price = models.DecimalField(max_digits=10, decimal_places=2)
    purchase_date = models.DateField()
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    added_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='medicine_stocks'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['expiry_date', 'purchase_date']

    def __str__(self):
        return f"{self.medicine.name} - {self.batch_number or 'no batch'} ({self.available_quantity})"

    @property
    def total_cost(self):
        return self.quantity * self.buy_price

    @property
    def stock_value(self):
        return self.available_quantity * self.buy_price

    @property
    def is_expired(self):
        return bool(self.expiry_date and self.expiry_date < get_local_today())


class MedicineSale(models.Model):
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('mobile_banking', 'Mobile Banking'),
    ]

    invoice_number = models.CharField(max_length=30, unique=True)
    customer_name = models.CharField(max_length=200, blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='cash')
    sale_date = models.DateField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    due_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    notes = models.TextField(blank=True)
    sold_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='medicine_sales'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-sale_date', '-created_at']

    def __str__(self):
        return f"{self.invoice_number} - {self.total_amount}"

    @staticmethod
    def generate_invoice_number(on_date=None):
        on_date = on_date or get_local_today()
        prefix = f'MS-{on_date:%Y%m%d}-'
        last = (
            MedicineSale.objects.filter(invoice_number__startswith=prefix)
            .order_by('-invoice_number')
            .values_list('invoice_number', flat=True)
            .first()
        )
        sequence = int(last.rsplit('-', 1)[1]) + 1 if last else 1
        return f'{prefix}{sequence:04d}'

    @classmethod
    def record(cls, lines, discount=ZERO, paid_amount=None, sale_date=None, user=None, **details):
        """
        Sell ``lines`` of (stock, quantity, unit_price or None).

        Stock is taken from each batch, the discount and any due are spread over
        the items in proportion to their totals, and the paid amount is posted
        as Medicine Sale income on the medicine account.
        """
        if not lines:
            raise StockError('A sale needs at least one item.')

        with db_transaction.atomic():
            sale_date = sale_date or get_local_today()
            sale = cls.objects.create(
                invoice_number=cls.generate_invoice_number(sale_date),
                sale_date=sale_date,
                sold_by=user,
                **details
            )

            items = []
            for stock, quantity, unit_price in lines:
                stock = MedicineStock.objects.select_for_update().select_related('medicine').get(pk=stock.pk)
                if quantity <= 0 or quantity > stock.available_quantity:
                    raise InsufficientStockError(stock, quantity)
                unit_price = Decimal(str(unit_price)) if unit_price is not None else stock.sale_price
                items.append(MedicineSaleItem(
                    sale=sale,
                    stock=stock,
                    quantity=quantity,
                    unit_price=unit_price,
                    buy_price=stock.buy_price,
                    total_price=unit_price * quantity,
                ))
                MedicineStock.objects.filter(pk=stock.pk).update(
                    available_quantity=F('available_quantity') - quantity
                )

            subtotal = sum((item.total_price for item in items), ZERO)
            discount = min(Decimal(str(discount or 0)), subtotal)
            total = subtotal - discount
            paid = total if paid_amount is None else min(Decimal(str(paid_amount)), total)
            due = total - paid

            allocate_shares(items, subtotal, discount, 'discount_share')
            allocate_shares(items, subtotal, due, 'due_share')
            MedicineSaleItem.objects.bulk_create(items)

            sale.subtotal = subtotal
            sale.discount = discount
            sale.total_amount = total
            sale.paid_amount = paid
            sale.due_amount = due
            sale.save(update_fields=['subtotal', 'discount', 'total_amount', 'paid_amount', 'due_amount'])

            if paid > 0:
                Account.for_kind(Account.MEDICINE).add_income(
                    paid,
                    'Medicine Sale',
                    f'Invoice {sale.invoice_number}',
                    date=sale_date,
                    user=user,
                    reference_type='medicine_sale',
                    reference_id=sale.pk,
                )

        logger.info("Medicine sale %s recorded: total %s, due %s", sale.invoice_number, total, due)
        return sale


def allocate_shares(items, subtotal, amount, field, weight=None):
    """
    Split ``amount`` over items in proportion to their total_price (or
    ``weight(item)``), where ``subtotal`` is the sum of the weights. The last
    item takes the rounding remainder so the shares add up exactly.

    A share never exceeds what is left to allocate, so no share goes
    negative when earlier shares round up.
    """
    weight = weight or (lambda item: item.total_price)
    remaining = Decimal(amount)
    for index, item in enumerate(items):
        if index == len(items) - 1 or not subtotal:
            share = remaining if subtotal else ZERO
        else:
            share = (Decimal(amount) * weight(item) / subtotal).quantize(CENT, rounding=ROUND_HALF_UP)
            share = min(share, remaining)
        share = max(share, ZERO)
        setattr(item, field, share)
        remaining -= share


class MedicineSaleItem(models.Model):
    sale = models.ForeignKey(MedicineSale, on_delete=models.CASCADE, related_name='items')
    stock = models.ForeignKey(MedicineStock, on_delete=models.PROTECT, related_name='sale_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    buy_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount_share = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    due_share = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    def __str__(self):
        return f"{self.stock.medicine.name} x {self.quantity}"

    @property
    def cost(self):
        return self.quantity * self.buy_price

    @property
    def profit(self):
        return self.total_price - self.discount_share - self.cost
