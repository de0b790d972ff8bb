from django.db import migrations, models
import orders.utils


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.CharField(db_index=True, default=orders.utils.generate_order_id, max_length=20, unique=True)),
                ('food_id', models.CharField(max_length=64)),
                ('meal_name', models.CharField(max_length=200)),
                ('chef_id', models.CharField(db_index=True, max_length=64)),
                ('chef_name', models.CharField(blank=True, default='', max_length=150)),
                ('user_email', models.EmailField(db_index=True, max_length=254)),
                ('user_name', models.CharField(blank=True, default='', max_length=150)),
                ('user_address', models.CharField(max_length=300)),
                ('price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('order_status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('cancelled', 'Cancelled'), ('delivered', 'Delivered')], db_index=True, default='pending', max_length=16)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid')], db_index=True, default='pending', max_length=16)),
                ('order_time', models.DateTimeField(auto_now_add=True)),
                ('delivery_time', models.DateTimeField(blank=True, null=True)),
                ('payment_time', models.DateTimeField(blank=True, null=True)),
                ('checkout_session_id', models.CharField(blank=True, db_index=True, default='', max_length=255)),
            ],
            options={
                'ordering': ('-order_time',),
            },
        ),
    ]
