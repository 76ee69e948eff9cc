# Generated manually
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='PersistedState',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('owner_key', models.CharField(db_index=True, help_text='user:<id> or client:<X-Client-Id>', max_length=100)),
                ('key', models.CharField(max_length=200)),
                ('data', models.TextField(help_text='JSON encoded {"data": ..., "timestamp": ms}')),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'persisted_states',
                'constraints': [
                    models.UniqueConstraint(fields=('owner_key', 'key'), name='uniq_persisted_state_owner_key'),
                ],
            },
        ),
    ]
