from django.urls import path

from core import views_admin, views_auth, views_elections

urlpatterns = [
    path('config', views_auth.app_config, name='api-config'),
    path('login', views_auth.login, name='api-login'),
    path('whoami', views_auth.whoami, name='api-whoami'),
    path('logout', views_auth.logout, name='api-logout'),

    path('admins', views_admin.admin_list, name='api-admins'),
    path('admins/<str:username>', views_admin.admin_remove, name='api-admin-remove'),
    path('setup/admin', views_admin.setup_first_admin, name='api-setup-admin'),
    path('degrees', views_admin.degrees, name='api-degrees'),
    path('degree-overrides', views_admin.user_degree_overrides, name='api-degree-overrides'),

    path('elections/bulk', views_admin.elections_bulk_create, name='api-elections-bulk'),
    path('elections/user', views_elections.user_elections, name='api-elections-user'),
    path(
        'elections/nominations/unverified-count',
        views_admin.unverified_nominations_count,
        name='api-nominations-unverified-count',
    ),
    path('elections/nominations/unverified', views_admin.unverified_nominations, name='api-nominations-unverified'),
    path('elections/results.csv', views_admin.results_export_csv, name='api-results-csv'),

    path('elections/<int:election_id>', views_elections.election_detail, name='api-election'),
    path('elections/<int:election_id>/self-nominate', views_elections.self_nominate, name='api-self-nominate'),
    path('elections/<int:election_id>/nominate', views_elections.nominate, name='api-nominate'),
    path('elections/<int:election_id>/vote-options', views_elections.vote_options, name='api-vote-options'),
    path('elections/<int:election_id>/vote', views_elections.cast_vote, name='api-vote'),
    path('elections/<int:election_id>/results', views_admin.election_results, name='api-election-results'),
    path(
        'elections/<int:election_id>/nominations',
        views_admin.election_nominations,
        name='api-election-nominations',
    ),
    path(
        'elections/<int:election_id>/nominations/<str:username>',
        views_admin.nomination_verify,
        name='api-nomination-verify',
    ),

    path('search-user', views_elections.search_user, name='api-search-user'),
]
