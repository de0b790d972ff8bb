from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('orders', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentLedgerEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount_minor', models.PositiveIntegerField()),
                ('currency', models.CharField(default='usd', max_length=8)),
                ('payment_method', models.CharField(blank=True, default='', max_length=32)),
                ('payer_email', models.EmailField(blank=True, default='', max_length=254)),
                ('session_id', models.CharField(max_length=255, unique=True)),
                ('payment_intent_id', models.CharField(blank=True, db_index=True, default='', max_length=255)),
                ('gateway_meta', models.JSONField(blank=True, null=True)),
                ('paid_at', models.DateTimeField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='orders.order', to_field='order_id')),
            ],
            options={
                'ordering': ('-paid_at',),
            },
        ),
    ]
