from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('infrastructure', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='registrolocal',
            name='pendente',
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name='registrolocal',
            name='versao',
            field=models.PositiveIntegerField(default=0),
        ),
    ]
