import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Lot',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('MP', 'Raw material'), ('PF', 'Finished good')], db_index=True, max_length=2, verbose_name='kind')),
                ('lot_number', models.CharField(max_length=50, verbose_name='lot number')),
                ('product_id', models.PositiveBigIntegerField(help_text='Catalog product (raw material or finished good); resolved in application layer', verbose_name='product ID')),
                ('quantity_initial', models.DecimalField(decimal_places=3, max_digits=15, verbose_name='initial quantity')),
                ('quantity_remaining', models.DecimalField(decimal_places=3, max_digits=15, verbose_name='remaining quantity')),
                ('manufacture_date', models.DateField(blank=True, null=True, verbose_name='manufacture date')),
                ('expiry_date', models.DateField(blank=True, db_index=True, null=True, verbose_name='expiry date')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='active')),
                ('origin_type', models.CharField(blank=True, help_text='Reception or ProductionRun', max_length=50, verbose_name='origin type')),
                ('origin_id', models.CharField(blank=True, max_length=64, verbose_name='origin ID')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=15, null=True, verbose_name='unit cost')),
                ('version', models.PositiveIntegerField(default=0, verbose_name='version')),
            ],
            options={
                'verbose_name': 'lot',
                'verbose_name_plural': 'lots',
                'ordering': ['kind', 'expiry_date', 'created_at'],
                'indexes': [
                    models.Index(fields=['kind', 'product_id', 'is_active'], name='lot_kind_product_active_idx'),
                    models.Index(fields=['kind', 'lot_number'], name='lot_kind_number_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('kind', 'lot_number'), name='unique_lot_number_per_kind'),
                    models.CheckConstraint(condition=models.Q(('quantity_initial__gt', 0)), name='lot_positive_initial_quantity'),
                    models.CheckConstraint(condition=models.Q(('quantity_remaining__gte', 0)), name='lot_non_negative_remaining'),
                    models.CheckConstraint(condition=models.Q(('quantity_remaining__lte', models.F('quantity_initial'))), name='lot_remaining_within_initial'),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('is_active', True), ('quantity_remaining__gt', 0)),
                            models.Q(('is_active', False), ('quantity_remaining', 0)),
                            _connector='OR',
                        ),
                        name='lot_active_iff_remaining',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='LotQuantityChange',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('change_type', models.CharField(choices=[('CREATION', 'Creation'), ('CONSUMPTION', 'Consumption'), ('ADJUSTMENT', 'Adjustment')], db_index=True, max_length=12, verbose_name='change type')),
                ('quantity_before', models.DecimalField(decimal_places=3, max_digits=15, verbose_name='quantity before')),
                ('quantity_after', models.DecimalField(decimal_places=3, max_digits=15, verbose_name='quantity after')),
                ('reference', models.CharField(blank=True, help_text='Production order, sale, recount reason, ...', max_length=255, verbose_name='reference')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='created by')),
                ('lot', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='quantity_changes', to='lots.lot', verbose_name='lot')),
            ],
            options={
                'verbose_name': 'lot quantity change',
                'verbose_name_plural': 'lot quantity changes',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['lot', 'created_at'], name='lot_change_lot_created_idx'),
                ],
            },
        ),
    ]
