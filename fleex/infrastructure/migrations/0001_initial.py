import fleex.infrastructure.models

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Loja',
            fields=[
                ('id', models.CharField(default=fleex.infrastructure.models.gerar_id, editable=False, max_length=36, primary_key=True, serialize=False)),
                ('slug', models.SlugField(max_length=80, unique=True, verbose_name='Slug público')),
                ('criado_em', models.DateTimeField(auto_now_add=True)),
                ('dono', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='lojas', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Loja',
                'verbose_name_plural': 'Lojas',
                'ordering': ['slug'],
            },
        ),
        migrations.CreateModel(
            name='RegistroLocal',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('loja_id', models.CharField(db_index=True, max_length=36)),
                ('colecao', models.CharField(max_length=64)),
                ('dados', models.JSONField(blank=True, null=True)),
                ('atualizado_em', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Registro Local',
                'verbose_name_plural': 'Registros Locais',
            },
        ),
        migrations.AddConstraint(
            model_name='registrolocal',
            constraint=models.UniqueConstraint(fields=('loja_id', 'colecao'), name='registro_local_unico_por_colecao'),
        ),
    ]
