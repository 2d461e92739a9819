import factory
from django.utils import timezone

from apps.authentication.models import User
from apps.core.choices import Location, Role
from apps.orders.models import Order
from apps.products.models import Product
from apps.tasks.models import Task, TaskStep

PASSWORD = 'TestPass123!'


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f'user{n}')
    email = factory.Sequence(lambda n: f'user{n}@example.com')
    first_name = factory.Sequence(lambda n: f'First{n}')
    last_name = 'Tester'
    role = Role.STORE_STAFF
    is_active = True

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        password = kwargs.pop('password', PASSWORD)
        return model_class.objects.create_user(*args, password=password, **kwargs)


class AdminFactory(UserFactory):
    role = Role.ADMIN


class StoreStaffFactory(UserFactory):
    role = Role.STORE_STAFF


class FactoryWorkerFactory(UserFactory):
    role = Role.FACTORY_WORKER


class OrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Order

    title = factory.Sequence(lambda n: f'Order {n}')
    customer_name = 'Acme Traders'
    created_by = factory.SubFactory(StoreStaffFactory)
    location = Location.STORE
    due_date = factory.LazyFunction(lambda: timezone.now() + timezone.timedelta(days=7))


class TaskFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Task

    title = factory.Sequence(lambda n: f'Task {n}')
    created_by = factory.SubFactory(AdminFactory)
    location = Location.FACTORY


class TaskStepFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = TaskStep

    task = factory.SubFactory(TaskFactory)
    title = factory.Sequence(lambda n: f'Step {n}')
    order = factory.Sequence(lambda n: n)


class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    name = factory.Sequence(lambda n: f'Hinge {n}')
    created_by = factory.SubFactory(StoreStaffFactory)
